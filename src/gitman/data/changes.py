"""Detect repository changes from filesystem metadata, without running git."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from datetime import UTC, datetime

from gitman.data.tree import git_repositories
from gitman.models.projects import Project
from gitman.models.scanning import ChangeStats

logger = logging.getLogger(__name__)


def _modification_date(path: str) -> datetime | None:
    try:
        return datetime.fromtimestamp(os.stat(path).st_mtime, tz=UTC)
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.error("Failed to get mod date for %s: %s", path, exc)
        return None


class ChangeDetector:
    """Flags repositories whose git metadata moved since their last probe.

    A heuristic filter: false positives only cost an extra probe, and a
    user-triggered full scan bypasses it entirely.
    """

    def has_changes(self, project: Project) -> bool:
        if not project.is_git_repository:
            return False
        if project.git_status is None or project.last_scanned is None:
            return True

        git_dir = os.path.join(project.path, ".git")
        index_date = _modification_date(os.path.join(git_dir, "index"))
        if index_date is None:
            logger.debug("No .git/index found for %s, assuming changed", project.name)
            return True
        head_date = _modification_date(os.path.join(git_dir, "HEAD"))
        if head_date is None:
            logger.debug("No .git/HEAD found for %s, assuming changed", project.name)
            return True
        refs_date = _modification_date(os.path.join(git_dir, "refs", "heads"))

        last_check = project.last_scanned
        changed = (
            index_date > last_check
            or head_date > last_check
            or (refs_date is not None and refs_date > last_check)
        )
        if changed:
            logger.debug("%s: changes detected", project.name)
        return changed

    def needs_full_refresh(self, project: Project, threshold: float = 900.0) -> bool:
        """True when the project has no status or its last probe is older than ``threshold``."""
        if project.git_status is None or project.last_scanned is None:
            return True
        elapsed = (datetime.now(UTC) - project.last_scanned).total_seconds()
        return elapsed > threshold

    def filter_changed(self, projects: Sequence[Project]) -> list[Project]:
        changed = [p for p in projects if self.has_changes(p)]
        logger.info("Change detection: %d of %d repos changed", len(changed), len(projects))
        return changed

    def extract_git_repos(self, project: Project) -> list[Project]:
        return git_repositories([project])

    def extract_changed_repos(self, project: Project) -> list[Project]:
        return self.filter_changed(self.extract_git_repos(project))

    def change_stats(self, projects: Sequence[Project]) -> ChangeStats:
        repos = git_repositories(projects)
        changed = self.filter_changed(repos)
        return ChangeStats(
            total_repos=len(repos),
            changed_repos=len(changed),
            unchanged_repos=len(repos) - len(changed),
            change_rate=len(changed) / len(repos) if repos else 0.0,
        )
