"""Project service: interactive operations on single projects."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING
from uuid import UUID

from result import Err, Ok, Result

from gitman.data.git import is_git_repository
from gitman.errors import GitmanError
from gitman.models.projects import Project

if TYPE_CHECKING:
    from gitman.data.tools import ToolLocator
    from gitman.models.cache import CacheStats
    from gitman.models.scanning import DependencyStatus
    from gitman.models.status import GitCommit, GitStatus
    from gitman.services.protocols import CacheStoreProtocol, StatusProbeProtocol
    from gitman.services.scanner import ProjectScanner

logger = logging.getLogger(__name__)

type ProjectRef = UUID | str


class ProjectService:
    """Service for branch switching, history, refreshes and cache housekeeping.

    Projects are referenced by id, or by path. A path that is not in the
    current tree is treated as an ad-hoc project.
    """

    def __init__(
        self,
        scanner: ProjectScanner,
        probe: StatusProbeProtocol,
        tools: ToolLocator,
        cache_store: CacheStoreProtocol,
    ) -> None:
        self._scanner = scanner
        self._probe = probe
        self._tools = tools
        self._cache = cache_store

    def resolve(self, ref: ProjectRef) -> Result[Project, str]:
        """Find the project for an id or path."""
        if isinstance(ref, UUID):
            project = self._scanner.get_project(ref)
            if project is None:
                return Err(f"Project {ref} not found")
            return Ok(project)

        path = os.path.abspath(os.path.expanduser(ref))
        project = self._scanner.get_project_by_path(path)
        if project is not None:
            return Ok(project)
        if not os.path.isdir(path):
            return Err(f"Directory not found: {path}")
        return Ok(Project(path=path, is_git_repository=is_git_repository(path)))

    async def status(self, ref: ProjectRef, *, light: bool = False) -> Result[GitStatus, str]:
        """Probe a project without updating the tree."""
        resolved = self.resolve(ref)
        if isinstance(resolved, Err):
            return Err(resolved.err_value)
        project = resolved.ok_value
        try:
            return Ok(await self._scanner.fetch_status(project, light=light))
        except GitmanError as exc:
            return Err(str(exc))

    async def refresh(self, ref: ProjectRef) -> Result[GitStatus, str]:
        """Timeout-bounded full probe, written back into the tree."""
        resolved = self.resolve(ref)
        if isinstance(resolved, Err):
            return Err(resolved.err_value)
        project = resolved.ok_value
        try:
            return Ok(await self._scanner.supervised_refresh(project))
        except GitmanError as exc:
            return Err(str(exc))

    async def switch_branch(self, ref: ProjectRef, branch: str) -> Result[GitStatus | None, str]:
        """Check out ``branch`` and refresh the project's status."""
        resolved = self.resolve(ref)
        if isinstance(resolved, Err):
            return Err(resolved.err_value)
        project = resolved.ok_value
        try:
            await self._probe.switch_branch(project.path, branch)
        except GitmanError as exc:
            logger.warning("Branch switch failed for %s: %s", project.path, exc)
            return Err(str(exc))

        if self._scanner.get_project(project.id) is None:
            return Ok(None)
        return Ok(await self._scanner.refresh_project(project.id))

    async def commit_history(self, ref: ProjectRef, limit: int = 10) -> Result[list[GitCommit], str]:
        resolved = self.resolve(ref)
        if isinstance(resolved, Err):
            return Err(resolved.err_value)
        project = resolved.ok_value
        try:
            return Ok(await self._probe.get_commit_history(project.path, limit))
        except GitmanError as exc:
            return Err(str(exc))

    async def check_dependencies(self) -> Result[list[DependencyStatus], str]:
        """Re-check git and gh availability."""
        self._tools.clear()
        return Ok(await self._tools.check_dependencies())

    async def cache_stats(self) -> Result[CacheStats | None, str]:
        try:
            return Ok(await self._cache.stats())
        except OSError as exc:
            return Err(f"Failed to read cache stats: {exc}")

    async def clear_cache(self) -> Result[None, str]:
        try:
            await self._cache.clear()
        except OSError as exc:
            return Err(f"Failed to clear cache: {exc}")
        return Ok(None)
