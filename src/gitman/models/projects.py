"""Project tree models."""

from __future__ import annotations

from pathlib import PurePath
from uuid import UUID, uuid4

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from gitman.models.status import GitStatus


class Project(BaseModel):
    """A node in the monitored tree.

    ``id`` is assigned once when the node is first discovered and carried over
    by every later merge for as long as ``path`` is unchanged. Consumers use it
    to track the same entity across updates.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    path: str
    name: str = ""
    is_root: bool = False
    is_workspace: bool = False
    is_git_repository: bool = False
    sub_projects: list[Project] = Field(default_factory=list)
    last_scanned: AwareDatetime | None = None
    last_reviewed: AwareDatetime | None = None
    git_status: GitStatus | None = None

    @model_validator(mode="after")
    def _default_name(self) -> Project:
        if not self.name:
            object.__setattr__(self, "name", PurePath(self.path).name or self.path)
        return self

    @property
    def status_description(self) -> str:
        """Human-readable status line."""
        if not self.is_git_repository:
            return "Not a Git repository"
        status = self.git_status
        if status is None:
            return "No status available"

        parts = [f"On branch: {status.current_branch}"]
        if status.has_uncommitted_changes:
            parts.append("Uncommitted changes")
        if status.pending_pull_requests > 0:
            parts.append(f"{status.pending_pull_requests} PR(s)")
        return " • ".join(parts)
