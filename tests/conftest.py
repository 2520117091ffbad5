"""Shared fixtures for gitman tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

import pytest

from gitman.config import Config
from gitman.data.settings import SettingsStore
from gitman.models.projects import Project
from gitman.models.scanning import DependencyStatus, ToolCheck
from gitman.models.status import GitCommit, GitStatus


class FakeRunner:
    """Command runner returning canned output keyed by argument prefix."""

    def __init__(self, responses: dict[tuple[str, ...], str | Exception] | None = None) -> None:
        self.responses: dict[tuple[str, ...], str | Exception] = dict(responses or {})
        self.calls: list[tuple[str, tuple[str, ...], str | None]] = []

    async def run(
        self,
        command: str,
        arguments: Sequence[str],
        directory: str | None = None,
    ) -> str:
        args = tuple(arguments)
        self.calls.append((command, args, directory))
        for prefix, response in self.responses.items():
            if args[: len(prefix)] == prefix:
                if isinstance(response, Exception):
                    raise response
                return response
        return ""

    def called_with(self, *prefix: str) -> bool:
        return any(args[: len(prefix)] == prefix for _, args, _ in self.calls)


class FakeTools:
    """Tool locator that reports every tool installed under /usr/bin unless listed missing."""

    def __init__(self, missing: Sequence[str] = ()) -> None:
        self.missing = set(missing)

    async def check(self, command: str) -> ToolCheck:
        if command in self.missing:
            return ToolCheck(is_available=False)
        return ToolCheck(is_available=True, path=f"/usr/bin/{command}")

    async def resolve(self, command: str) -> str:
        return (await self.check(command)).path or command

    def clear(self) -> None:
        return

    async def check_dependencies(self) -> list[DependencyStatus]:
        return []


def make_repo(root: Path, *parts: str) -> Path:
    """Create a directory that looks like a git repository to the filesystem."""
    repo = root.joinpath(*parts)
    git_dir = repo / ".git"
    (git_dir / "refs" / "heads").mkdir(parents=True)
    (git_dir / "HEAD").write_text("ref: refs/heads/main\n")
    (git_dir / "index").write_bytes(b"")
    return repo


def set_mtime(path: Path, timestamp: float) -> None:
    os.utime(path, (timestamp, timestamp))


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_tools() -> FakeTools:
    return FakeTools()


@pytest.fixture
def repo_factory(tmp_path: Path) -> Callable[..., Path]:
    """Build fake repositories under a temporary workspace."""

    def factory(*parts: str) -> Path:
        return make_repo(tmp_path, *parts)

    return factory


@pytest.fixture
def test_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    """Config with a temporary cache dir and a batch size of exactly 2."""
    monkeypatch.setattr("gitman.config.os.cpu_count", lambda: 1)
    return Config(cache_dir=tmp_path / "cache", min_batch_size=2)


class FakeProbe:
    """Status probe recording calls; statuses and failures are keyed by project name."""

    def __init__(
        self,
        statuses: dict[str, GitStatus] | None = None,
        failing: Sequence[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.statuses = dict(statuses or {})
        self.failing = set(failing)
        self.delay = delay
        self.full_calls: list[str] = []
        self.light_calls: list[tuple[str, GitStatus | None]] = []
        self.switched: list[tuple[str, str]] = []
        self.switch_error: Exception | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def _probe(self, project: Project) -> GitStatus:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if project.name in self.failing:
            raise RuntimeError(f"probe failed for {project.name}")
        return self.statuses.get(project.name, GitStatus())

    async def get_status(self, project: Project) -> GitStatus:
        self.full_calls.append(project.name)
        return await self._probe(project)

    async def get_light_status(
        self,
        project: Project,
        cached_status: GitStatus | None = None,
    ) -> GitStatus:
        self.light_calls.append((project.name, cached_status))
        return await self._probe(project)

    async def switch_branch(self, path: str, branch_name: str) -> None:
        if self.switch_error is not None:
            raise self.switch_error
        self.switched.append((path, branch_name))

    async def get_commit_history(self, path: str, limit: int = 10) -> list[GitCommit]:
        return [
            GitCommit(hash="abc1234", author="Ada", message="Initial", date=datetime(2026, 3, 1, tzinfo=UTC))
        ][:limit]


@pytest.fixture
def settings(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "cache" / "settings.json")
