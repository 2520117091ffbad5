"""Scan, change-detection, and dependency result models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


@dataclass(slots=True)
class ScanResult:
    """Result summary for one scan or refresh cycle."""

    repositories: int = 0
    probed: int = 0
    failed: int = 0
    from_cache: bool = False
    cache_saved: bool = False


@dataclass(slots=True, frozen=True)
class ChangeStats:
    """How many repositories change detection flagged."""

    total_repos: int
    changed_repos: int
    unchanged_repos: int
    change_rate: float

    @property
    def percent_changed(self) -> str:
        return f"{self.change_rate * 100:.1f}%"


@dataclass(slots=True, frozen=True)
class ToolCheck:
    """Whether an executable is available and where."""

    is_available: bool
    path: str | None = None


class DependencyKind(StrEnum):
    MISSING_GIT = "missing_git"
    MISSING_GITHUB_CLI = "missing_github_cli"


_MESSAGES = {
    DependencyKind.MISSING_GIT: "Git is not installed or not in PATH.",
    DependencyKind.MISSING_GITHUB_CLI: "GitHub CLI (gh) is not installed.",
}

_INSTALL_HINTS = {
    DependencyKind.MISSING_GIT: "Install Xcode Command Line Tools or 'brew install git'",
    DependencyKind.MISSING_GITHUB_CLI: "Run 'brew install gh' in Terminal",
}


@dataclass(slots=True, frozen=True)
class DependencyStatus:
    """A missing external tool."""

    kind: DependencyKind
    path: str | None = None

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind]

    @property
    def install_instruction(self) -> str:
        return _INSTALL_HINTS[self.kind]
