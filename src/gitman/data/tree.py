"""Pure helpers over the project tree.

Nodes are immutable, so every update returns a new tree. The tree is strictly
hierarchical: parents hold children, children hold no back-references.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from datetime import datetime
from uuid import UUID

from gitman.models.projects import Project
from gitman.models.status import GitStatus


def iter_projects(projects: Sequence[Project]) -> Iterator[Project]:
    """Yield every node depth-first, parents before children."""
    for project in projects:
        yield project
        yield from iter_projects(project.sub_projects)


def flatten(projects: Sequence[Project]) -> list[Project]:
    return list(iter_projects(projects))


def git_repositories(projects: Sequence[Project]) -> list[Project]:
    """All repository nodes, depth-first."""
    return [p for p in iter_projects(projects) if p.is_git_repository]


def find_by_id(projects: Sequence[Project], project_id: UUID) -> Project | None:
    """Find a node by identity, checking the top level before descending."""
    for project in projects:
        if project.id == project_id:
            return project
    for project in projects:
        found = find_by_id(project.sub_projects, project_id)
        if found is not None:
            return found
    return None


def find_by_path(projects: Sequence[Project], path: str) -> Project | None:
    """Find a node by path, checking the top level before descending."""
    for project in projects:
        if project.path == path:
            return project
    for project in projects:
        found = find_by_path(project.sub_projects, path)
        if found is not None:
            return found
    return None


def _sort_key(project: Project) -> tuple[str, str]:
    return (project.name.lower(), project.path)


def sort_projects(projects: Sequence[Project]) -> list[Project]:
    return sorted(projects, key=_sort_key)


def merge_projects(existing: Sequence[Project], discovered: Sequence[Project]) -> list[Project]:
    """Reconcile a fresh discovery with the tree currently held.

    Structure (name, kind flags, children) comes from ``discovered``. For each
    discovered node whose path exists anywhere in ``existing``, identity,
    status, and timestamps are carried over from the existing node. Nodes whose
    paths are gone simply do not appear in the result. Every level is sorted
    by name.
    """
    by_path = {p.path: p for p in iter_projects(existing)}
    return _merge_level(by_path, discovered)


def _merge_level(by_path: dict[str, Project], discovered: Sequence[Project]) -> list[Project]:
    merged: list[Project] = []
    for fresh in discovered:
        children = _merge_level(by_path, fresh.sub_projects)
        previous = by_path.get(fresh.path)
        if previous is None:
            merged.append(fresh.model_copy(update={"sub_projects": children}))
            continue
        merged.append(
            fresh.model_copy(
                update={
                    "id": previous.id,
                    "git_status": previous.git_status,
                    "last_scanned": previous.last_scanned,
                    "last_reviewed": previous.last_reviewed,
                    "sub_projects": children,
                }
            )
        )
    return sort_projects(merged)


def _replace_where(
    projects: Sequence[Project],
    matches: Callable[[Project], bool],
    update: dict[str, object],
) -> tuple[list[Project], bool]:
    """Apply ``update`` to the first matching node (top level first)."""
    for index, project in enumerate(projects):
        if matches(project):
            updated = list(projects)
            updated[index] = project.model_copy(update=update)
            return updated, True
    for index, project in enumerate(projects):
        children, found = _replace_where(project.sub_projects, matches, update)
        if found:
            updated = list(projects)
            updated[index] = project.model_copy(update={"sub_projects": children})
            return updated, True
    return list(projects), False


def with_status(
    projects: Sequence[Project],
    project_id: UUID,
    status: GitStatus,
    scanned_at: datetime,
) -> tuple[list[Project], bool]:
    """Write ``status`` into the node with ``project_id``.

    Returns the new tree and whether the node was found; an absent id leaves
    the tree unchanged.
    """
    return _replace_where(
        projects,
        lambda p: p.id == project_id,
        {"git_status": status, "last_scanned": scanned_at},
    )


def with_status_at_path(
    projects: Sequence[Project],
    path: str,
    status: GitStatus,
    scanned_at: datetime,
) -> tuple[list[Project], bool]:
    return _replace_where(
        projects,
        lambda p: p.path == path,
        {"git_status": status, "last_scanned": scanned_at},
    )


def with_reviewed(
    projects: Sequence[Project],
    project_id: UUID,
    reviewed_at: datetime,
) -> tuple[list[Project], bool]:
    return _replace_where(projects, lambda p: p.id == project_id, {"last_reviewed": reviewed_at})


def without_path(projects: Sequence[Project], path: str) -> tuple[list[Project], bool]:
    """Drop the node at ``path`` (and its subtree) wherever it sits.

    Returns the new tree and whether anything was removed.
    """
    kept: list[Project] = []
    removed = False
    for project in projects:
        if project.path == path:
            removed = True
            continue
        children, child_removed = without_path(project.sub_projects, path)
        if child_removed:
            removed = True
            project = project.model_copy(
                update={
                    "sub_projects": children,
                    "is_workspace": bool(children) and not project.is_git_repository,
                }
            )
        kept.append(project)
    return kept, removed
