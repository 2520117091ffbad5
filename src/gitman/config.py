"""Configuration for gitman."""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_TOOL_SEARCH_DIRS: tuple[str, ...] = (
    "/usr/bin",
    "/usr/local/bin",
    "/opt/homebrew/bin",  # Apple Silicon
    "/bin",
)


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    cache_dir: Path = field(default_factory=lambda: Path.home() / ".cache" / "gitman")
    cache_max_age_seconds: float = 3600.0
    save_throttle_seconds: float = 30.0
    probe_timeout_seconds: float = 15.0
    full_refresh_threshold_seconds: float = 900.0
    discovery_max_depth: int = 3
    min_batch_size: int = 5
    tool_search_dirs: tuple[str, ...] = DEFAULT_TOOL_SEARCH_DIRS

    @property
    def cache_path(self) -> Path:
        return self.cache_dir / "projects.cache"

    @property
    def settings_path(self) -> Path:
        return self.cache_dir / "settings.json"

    @property
    def batch_size(self) -> int:
        """Probes dispatched together: max(min_batch_size, logical cores)."""
        return max(self.min_batch_size, os.cpu_count() or 1)
