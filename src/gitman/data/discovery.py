"""Discover git repositories and workspaces under monitored paths."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from gitman.data.tree import sort_projects
from gitman.models.projects import Project

logger = logging.getLogger(__name__)


def _project_name_from_path(path: str) -> str:
    """Extract a human-readable project name from a path."""
    if not path:
        return "Unknown"
    parts = path.rstrip("/").split("/")
    return parts[-1] or path


def _normalize(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


def _has_git_metadata(path: str) -> bool:
    return os.path.exists(os.path.join(path, ".git"))


def _list_subdirectories(path: str, ignored: set[str]) -> list[str]:
    """Non-hidden, non-ignored child directories, sorted by name."""
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as exc:
        logger.error("Failed to list contents of %s: %s", path, exc)
        return []

    subdirs: list[str] = []
    for entry in entries:
        if entry.name.startswith("."):
            continue
        if entry.path in ignored:
            continue
        try:
            if not entry.is_dir():
                continue
        except OSError:
            continue
        subdirs.append(entry.path)
    return subdirs


def discover_projects(
    monitored_paths: Iterable[str],
    ignored_paths: Iterable[str] = (),
    max_depth: int = 3,
) -> list[Project]:
    """Walk monitored paths and build the project tree.

    No git commands run: a directory is a repository when it holds ``.git``,
    and repositories are not descended into. Each monitored path becomes a
    root node. Nested folders become workspaces when some descendant within
    ``max_depth`` levels is a repository; folders directly under a root are
    kept as plain nodes even when empty of repositories. A monitored path
    nested inside another one appears only as its own root, never also as a
    descendant of the outer root.

    Returns:
        Root nodes, sorted by name. Missing or ignored paths are skipped.
    """
    ignored = {_normalize(p) for p in ignored_paths}
    monitored = list(dict.fromkeys(_normalize(p) for p in monitored_paths))
    roots: list[Project] = []

    for path in monitored:
        if path in ignored:
            continue
        if not os.path.isdir(path):
            logger.error("Path does not exist or is not directory: %s", path)
            continue

        logger.info("Scanning monitored path: %s", path)
        if _has_git_metadata(path):
            logger.info("Found git repo at root: %s", path)
            roots.append(
                Project(
                    path=path,
                    name=_project_name_from_path(path),
                    is_root=True,
                    is_git_repository=True,
                )
            )
            continue

        skipped = ignored | {other for other in monitored if other != path}
        children: list[Project] = []
        for subdir in _list_subdirectories(path, skipped):
            child = _discover_node(subdir, skipped, depth=1, max_depth=max_depth, keep_plain=True)
            if child is not None:
                children.append(child)
        roots.append(
            Project(
                path=path,
                name=_project_name_from_path(path),
                is_root=True,
                is_workspace=bool(children),
                sub_projects=sort_projects(children),
            )
        )

    return sort_projects(roots)


def _discover_node(
    path: str,
    ignored: set[str],
    *,
    depth: int,
    max_depth: int,
    keep_plain: bool = False,
) -> Project | None:
    name = _project_name_from_path(path)
    if _has_git_metadata(path):
        logger.debug("Found repo: %s", path)
        return Project(path=path, name=name, is_git_repository=True)

    children: list[Project] = []
    if depth < max_depth:
        for subdir in _list_subdirectories(path, ignored):
            child = _discover_node(subdir, ignored, depth=depth + 1, max_depth=max_depth)
            if child is not None:
                children.append(child)

    if children:
        return Project(path=path, name=name, is_workspace=True, sub_projects=sort_projects(children))
    if keep_plain:
        return Project(path=path, name=name)
    return None
