"""Protocol definitions for injectable collaborators."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from gitman.models.cache import CacheStats, ProjectCache
from gitman.models.projects import Project
from gitman.models.status import GitCommit, GitStatus


class CommandRunnerProtocol(Protocol):
    """Runs an external program and returns its combined output."""

    async def run(
        self,
        command: str,
        arguments: Sequence[str],
        directory: str | None = None,
    ) -> str: ...


class StatusProbeProtocol(Protocol):
    """Full and light git status probes plus interactive git operations."""

    async def get_status(self, project: Project) -> GitStatus: ...

    async def get_light_status(
        self,
        project: Project,
        cached_status: GitStatus | None = None,
    ) -> GitStatus: ...

    async def switch_branch(self, path: str, branch_name: str) -> None: ...

    async def get_commit_history(self, path: str, limit: int = 10) -> list[GitCommit]: ...


class CacheStoreProtocol(Protocol):
    """Persistence for the project tree."""

    async def save(self, cache: ProjectCache, force: bool = False) -> bool: ...

    async def load(self) -> ProjectCache | None: ...

    def is_valid(
        self,
        cache: ProjectCache,
        current_paths: Iterable[str],
        max_age: float | None = None,
    ) -> bool: ...

    async def clear(self) -> None: ...

    async def stats(self) -> CacheStats | None: ...


class DiscoverProjects(Protocol):
    """Builds a status-free project tree from monitored paths."""

    def __call__(
        self,
        monitored_paths: Iterable[str],
        ignored_paths: Iterable[str] = (),
        max_depth: int = 3,
    ) -> list[Project]: ...
