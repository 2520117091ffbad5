"""Persisted cache models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import AwareDatetime, BaseModel, Field

from gitman.models.projects import Project

CACHE_FORMAT_VERSION = "1.0"


class ProjectCache(BaseModel):
    """The whole project tree plus scan metadata, as stored on disk."""

    version: str = CACHE_FORMAT_VERSION
    last_scan_date: AwareDatetime = Field(default_factory=lambda: datetime.now(UTC))
    monitored_paths: list[str] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)


@dataclass(slots=True, frozen=True)
class CacheStats:
    """Size and age of the cache file."""

    size_bytes: int
    last_modified: datetime | None = None

    @property
    def formatted_size(self) -> str:
        if self.size_bytes < 1000:
            return f"{self.size_bytes} bytes"
        kilobytes = self.size_bytes / 1000
        if kilobytes < 1000:
            return f"{kilobytes:.1f} KB"
        return f"{kilobytes / 1000:.1f} MB"
