"""Pydantic models for gitman."""

from gitman.models.cache import CACHE_FORMAT_VERSION, CacheStats, ProjectCache
from gitman.models.projects import Project
from gitman.models.scanning import (
    ChangeStats,
    DependencyKind,
    DependencyStatus,
    ScanResult,
    ToolCheck,
)
from gitman.models.status import NO_BRANCH, GitBranch, GitCommit, GitStatus, HealthStatus

__all__ = [
    "CACHE_FORMAT_VERSION",
    "CacheStats",
    "ChangeStats",
    "DependencyKind",
    "DependencyStatus",
    "GitBranch",
    "GitCommit",
    "GitStatus",
    "HealthStatus",
    "NO_BRANCH",
    "Project",
    "ProjectCache",
    "ScanResult",
    "ToolCheck",
]
