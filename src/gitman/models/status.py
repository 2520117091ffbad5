"""Git status snapshot models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

NO_BRANCH = "No Branch (Empty)"


class HealthStatus(StrEnum):
    """Overall health of a repository, most urgent first."""

    NEEDS_ATTENTION = "needs_attention"
    HAS_PULL_REQUESTS = "has_pull_requests"
    CLEAN = "clean"


class GitBranch(BaseModel):
    """A local branch with its tip commit metadata."""

    model_config = ConfigDict(frozen=True)

    name: str
    is_current: bool = False
    last_commit_date: datetime | None = None
    last_commit_hash: str | None = None


class GitCommit(BaseModel):
    """One entry of a repository's commit history."""

    model_config = ConfigDict(frozen=True)

    hash: str
    author: str = ""
    email: str = ""
    message: str = ""
    date: datetime


class GitStatus(BaseModel):
    """Point-in-time snapshot of one repository's git state.

    Immutable once built. A light probe copies the fields it did not re-check
    (file lists, pull requests, remote flag, ahead/behind, branches) from the
    previous snapshot, so those may be stale by design.
    """

    model_config = ConfigDict(frozen=True)

    current_branch: str = "main"
    has_uncommitted_changes: bool = False
    untracked_files: list[str] = Field(default_factory=list)
    modified_files: list[str] = Field(default_factory=list)
    staged_files: list[str] = Field(default_factory=list)
    pending_pull_requests: int = 0
    last_commit_hash: str | None = None
    last_commit_message: str | None = None
    last_commit_date: datetime | None = None
    has_github_remote: bool = False
    incoming_commits: int = 0
    outgoing_commits: int = 0
    branches: list[GitBranch] = Field(default_factory=list)

    @property
    def health_status(self) -> HealthStatus:
        if self.has_uncommitted_changes:
            return HealthStatus.NEEDS_ATTENTION
        if self.pending_pull_requests > 0:
            return HealthStatus.HAS_PULL_REQUESTS
        return HealthStatus.CLEAN
