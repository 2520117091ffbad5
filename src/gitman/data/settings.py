"""Persisted monitored and ignored path lists."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """User-editable scan settings."""

    monitored_paths: list[str] = Field(default_factory=list)
    ignored_paths: list[str] = Field(default_factory=list)


class SettingsStore:
    """Load and save :class:`Settings` as JSON."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._settings = self._load()

    @property
    def monitored_paths(self) -> list[str]:
        return list(self._settings.monitored_paths)

    @property
    def ignored_paths(self) -> list[str]:
        return list(self._settings.ignored_paths)

    def add_monitored_path(self, path: str) -> bool:
        if path in self._settings.monitored_paths:
            return False
        self._settings.monitored_paths.append(path)
        self._save()
        return True

    def remove_monitored_path(self, path: str) -> bool:
        if path not in self._settings.monitored_paths:
            return False
        self._settings.monitored_paths = [p for p in self._settings.monitored_paths if p != path]
        self._save()
        return True

    def ignore_path(self, path: str) -> bool:
        if path in self._settings.ignored_paths:
            return False
        self._settings.ignored_paths.append(path)
        self._save()
        return True

    def _load(self) -> Settings:
        if not self._path.is_file():
            return Settings()
        try:
            return Settings.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (ValidationError, OSError) as exc:
            logger.warning("Failed to load settings %s: %s", self._path, exc)
            return Settings()

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self._settings.model_dump(), indent=2) + "\n",
            encoding="utf-8",
        )
