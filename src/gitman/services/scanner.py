"""Scan orchestration: cache-first startup, discovery merge, batched probes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from gitman.data.changes import ChangeDetector
from gitman.data.discovery import discover_projects
from gitman.data.tree import (
    find_by_id,
    find_by_path,
    git_repositories,
    merge_projects,
    with_reviewed,
    with_status,
    with_status_at_path,
    without_path,
)
from gitman.errors import CacheCorruptedError, NotAGitRepositoryError, ProbeTimeoutError
from gitman.models.cache import ProjectCache
from gitman.models.scanning import ScanResult
from gitman.services.tasks import BackgroundTasks

if TYPE_CHECKING:
    from gitman.config import Config
    from gitman.data.settings import SettingsStore
    from gitman.models.projects import Project
    from gitman.models.status import GitStatus
    from gitman.services.protocols import (
        CacheStoreProtocol,
        DiscoverProjects,
        StatusProbeProtocol,
    )

logger = logging.getLogger(__name__)

type ProjectsListener = Callable[[list[Project]], None]


def _now() -> datetime:
    return datetime.now(UTC)


class ProjectScanner:
    """Single owner of the in-memory project tree.

    Every tree update goes through this class and replaces the tree with a new
    value in one synchronous step, so concurrent refreshes interleave only at
    await points and the last status write per project wins. Listeners
    registered with :meth:`subscribe` receive each new tree.
    """

    def __init__(
        self,
        config: Config,
        probe: StatusProbeProtocol,
        cache_store: CacheStoreProtocol,
        settings: SettingsStore,
        *,
        change_detector: ChangeDetector | None = None,
        discover: DiscoverProjects = discover_projects,
    ) -> None:
        self._config = config
        self._probe = probe
        self._cache = cache_store
        self._settings = settings
        self._detector = change_detector or ChangeDetector()
        self._discover = discover
        self._projects: list[Project] = []
        self._last_scan_date: datetime | None = None
        self._listeners: list[ProjectsListener] = []
        self._background = BackgroundTasks()
        self._scans_running = 0
        self._scan_lock = asyncio.Lock()
        self._last_error: str | None = None

    # ── observable state ──

    @property
    def projects(self) -> list[Project]:
        return list(self._projects)

    @property
    def repositories(self) -> list[Project]:
        return git_repositories(self._projects)

    @property
    def projects_needing_attention(self) -> list[Project]:
        return [
            p
            for p in git_repositories(self._projects)
            if p.git_status is not None and p.git_status.has_uncommitted_changes
        ]

    @property
    def is_scanning(self) -> bool:
        return self._scans_running > 0

    @property
    def last_error(self) -> str | None:
        """Message of the most recent per-project probe failure."""
        return self._last_error

    @property
    def last_scan_date(self) -> datetime | None:
        return self._last_scan_date

    @property
    def monitored_paths(self) -> list[str]:
        return self._settings.monitored_paths

    def subscribe(self, listener: ProjectsListener) -> Callable[[], None]:
        """Register ``listener`` for tree updates; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get_project(self, project_id: UUID) -> Project | None:
        return find_by_id(self._projects, project_id)

    def get_project_by_path(self, path: str) -> Project | None:
        return find_by_path(self._projects, path)

    def _set_projects(self, projects: list[Project]) -> None:
        self._projects = projects
        for listener in list(self._listeners):
            try:
                listener(self.projects)
            except Exception:
                logger.exception("Project listener failed")

    # ── entry points ──

    async def start(self) -> ScanResult:
        """Cache-first startup.

        A valid cache is adopted immediately and a light refresh of changed
        repositories runs in the background. A missing, unreadable or invalid
        cache leads to a full scan; an invalid one is still shown meanwhile.
        """
        monitored = self._settings.monitored_paths
        try:
            cache = await self._cache.load()
        except CacheCorruptedError as exc:
            logger.warning("Ignoring unreadable cache: %s", exc)
            cache = None

        if cache is None:
            return await self.full_scan()

        projects = cache.projects
        for ignored in self._settings.ignored_paths:
            projects, _ = without_path(projects, ignored)
        self._last_scan_date = cache.last_scan_date
        self._set_projects(projects)

        if not self._cache.is_valid(cache, monitored, self._config.cache_max_age_seconds):
            logger.info("Cache is stale, running full scan")
            return await self.full_scan()

        logger.info("Using cached project tree, refreshing changed repos in background")
        self._background.schedule(self.refresh_changed())
        return ScanResult(repositories=len(self.repositories), from_cache=True)

    async def full_scan(self) -> ScanResult:
        """Discover, merge, fully probe every repository, then force-save the cache."""
        async with self._scan_lock:
            return await self._full_scan_locked()

    async def _full_scan_locked(self) -> ScanResult:
        self._scans_running += 1
        try:
            logger.info("Starting full scan")
            discovered = await asyncio.to_thread(
                self._discover,
                self._settings.monitored_paths,
                self._settings.ignored_paths,
                self._config.discovery_max_depth,
            )
            self._set_projects(merge_projects(self._projects, discovered))

            repos = git_repositories(self._projects)
            result = ScanResult(repositories=len(repos))
            await self._probe_in_batches(repos, light=False, result=result)

            self._last_scan_date = _now()
            result.cache_saved = await self.save_cache(force=True)
            logger.info(
                "Full scan completed: %d repos, %d failed", result.repositories, result.failed
            )
            return result
        finally:
            self._scans_running -= 1

    async def refresh_changed(self) -> ScanResult:
        """Light-probe only repositories whose git metadata changed; throttled save."""
        self._scans_running += 1
        try:
            repos = git_repositories(self._projects)
            changed = self._detector.filter_changed(repos)
            result = ScanResult(repositories=len(repos))
            await self._probe_in_batches(changed, light=True, result=result)
            result.cache_saved = await self.save_cache(force=False)
            return result
        finally:
            self._scans_running -= 1

    async def refresh_project(self, project_id: UUID) -> GitStatus | None:
        """Fully probe one project and write the result back."""
        project = self.get_project(project_id)
        if project is None or not project.is_git_repository:
            return None
        if not await self._refresh_one(project, light=False):
            return None
        updated = self.get_project(project_id)
        return updated.git_status if updated is not None else None

    async def fetch_status(
        self,
        project: Project,
        *,
        light: bool = False,
        timeout: float | None = None,
    ) -> GitStatus:
        """Probe ``project`` without touching the tree.

        With ``timeout``, the probe races a timer and is cancelled if the
        timer wins.

        Raises:
            NotAGitRepositoryError: The project has no git metadata.
            ProbeTimeoutError: ``timeout`` elapsed first.
        """
        probe = self._run_probe(project, light=light)
        if timeout is None:
            return await probe
        try:
            return await asyncio.wait_for(probe, timeout)
        except TimeoutError:
            logger.warning("Status probe for %s timed out after %ss", project.path, timeout)
            raise ProbeTimeoutError(project.path, timeout) from None

    async def supervised_refresh(self, project: Project) -> GitStatus:
        """Timeout-bounded probe of one project, applied to the tree by path."""
        status = await self.fetch_status(project, timeout=self._config.probe_timeout_seconds)
        self.apply_status(project.path, status)
        return status

    def update_status(
        self,
        project_id: UUID,
        status: GitStatus,
        scanned_at: datetime | None = None,
    ) -> bool:
        """Write ``status`` into the node with ``project_id``; no-op when it is gone."""
        projects, found = with_status(self._projects, project_id, status, scanned_at or _now())
        if found:
            self._set_projects(projects)
        return found

    def apply_status(self, path: str, status: GitStatus) -> bool:
        """Write an externally obtained ``status`` into the node at ``path``."""
        projects, found = with_status_at_path(self._projects, path, status, _now())
        if found:
            self._set_projects(projects)
        return found

    def mark_reviewed(self, project_id: UUID) -> bool:
        projects, found = with_reviewed(self._projects, project_id, _now())
        if found:
            self._set_projects(projects)
        return found

    async def ignore_path(self, path: str) -> bool:
        """Stop monitoring ``path`` and drop it from the tree."""
        self._settings.ignore_path(path)
        projects, removed = without_path(self._projects, path)
        if removed:
            self._set_projects(projects)
            await self.save_cache(force=True)
        return removed

    async def save_cache(self, force: bool = False) -> bool:
        """Persist the current tree; failures are logged and reported as False."""
        cache = ProjectCache(
            last_scan_date=self._last_scan_date or _now(),
            monitored_paths=self._settings.monitored_paths,
            projects=self._projects,
        )
        try:
            return await self._cache.save(cache, force=force)
        except OSError:
            logger.exception("Failed to save cache")
            return False

    async def wait_for_background(self) -> None:
        await self._background.wait()

    async def shutdown(self) -> None:
        """Cancel background refreshes and persist the final tree, if one was built."""
        await self._background.cancel_all()
        if self._last_scan_date is not None:
            await self.save_cache(force=True)

    # ── probing ──

    async def _run_probe(self, project: Project, *, light: bool) -> GitStatus:
        if not light:
            return await self._probe.get_status(project)
        current = self.get_project(project.id)
        previous = current.git_status if current is not None else project.git_status
        return await self._probe.get_light_status(project, previous)

    async def _refresh_one(self, project: Project, *, light: bool) -> bool:
        try:
            status = await self._run_probe(project, light=light)
        except NotAGitRepositoryError as exc:
            logger.warning("Skipping %s: no longer a git repository", project.path)
            self._last_error = str(exc)
            return False
        except Exception as exc:
            logger.exception("Failed to refresh project %s", project.name)
            self._last_error = f"{project.name}: {exc}"
            return False
        return self.update_status(project.id, status)

    async def _probe_in_batches(
        self,
        projects: Sequence[Project],
        *,
        light: bool,
        result: ScanResult,
    ) -> None:
        """Probe in fixed-size batches; a batch finishes before the next starts."""
        batch_size = self._config.batch_size
        for start in range(0, len(projects), batch_size):
            batch = projects[start : start + batch_size]
            outcomes = await asyncio.gather(
                *(self._refresh_one(project, light=light) for project in batch)
            )
            for ok in outcomes:
                if ok:
                    result.probed += 1
                else:
                    result.failed += 1
