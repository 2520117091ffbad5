"""Disk cache for the project tree: throttled atomic saves, loading, validation."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from gitman.errors import CacheCorruptedError
from gitman.models.cache import CacheStats, ProjectCache

logger = logging.getLogger(__name__)


class CacheStore:
    """Owns the cache file and the time of the last successful save.

    Saves are serialized through a lock; the last-save time is private to the
    store and only ever changed by :meth:`save`.
    """

    def __init__(
        self,
        cache_path: Path,
        *,
        throttle_seconds: float = 30.0,
        max_age_seconds: float = 3600.0,
    ) -> None:
        self._path = cache_path
        self._throttle_seconds = throttle_seconds
        self._max_age_seconds = max_age_seconds
        self._last_save: float | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def save(self, cache: ProjectCache, force: bool = False) -> bool:
        """Write ``cache`` to disk unless throttled.

        Args:
            cache: Snapshot to persist.
            force: Bypass the minimum interval between saves.

        Returns:
            True if the file was written.
        """
        async with self._lock:
            if not force and self._last_save is not None:
                elapsed = time.monotonic() - self._last_save
                if elapsed < self._throttle_seconds:
                    logger.debug("Save throttled (last save %.1fs ago)", elapsed)
                    return False

            payload = cache.model_dump_json(indent=2)
            await asyncio.to_thread(self._write_atomic, payload)
            self._last_save = time.monotonic()
            logger.info(
                "Cache saved: %d projects, %d bytes", len(cache.projects), len(payload.encode())
            )
            return True

    def _write_atomic(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file:
                file.write(payload)
                file.flush()
                os.fsync(file.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def load(self) -> ProjectCache | None:
        """Read the stored snapshot, or None when there is no cache file.

        Raises:
            CacheCorruptedError: The file exists but cannot be decoded.
        """
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.info("No cache file found")
            return None
        except OSError as exc:
            raise CacheCorruptedError(f"Failed to read cache {self._path}: {exc}") from exc

        try:
            cache = ProjectCache.model_validate_json(raw)
        except ValidationError as exc:
            raise CacheCorruptedError(f"Failed to decode cache {self._path}: {exc}") from exc

        logger.info(
            "Cache loaded: %d projects from %s",
            len(cache.projects),
            cache.last_scan_date.isoformat(),
        )
        return cache

    def is_fresh(
        self,
        cache: ProjectCache,
        max_age: float | None = None,
        *,
        now: datetime | None = None,
    ) -> bool:
        """True while the snapshot is strictly younger than ``max_age`` seconds."""
        limit = self._max_age_seconds if max_age is None else max_age
        age = ((now or datetime.now(UTC)) - cache.last_scan_date).total_seconds()
        if age >= limit:
            logger.debug("Cache expired: %.0fs old (max: %.0fs)", age, limit)
            return False
        return True

    def paths_match(self, cache: ProjectCache, current_paths: Iterable[str]) -> bool:
        """True when the monitored path sets are equal, ignoring order."""
        cached = set(cache.monitored_paths)
        current = set(current_paths)
        if cached != current:
            logger.warning(
                "Monitored paths changed. Cached: %d, Current: %d", len(cached), len(current)
            )
            return False
        return True

    def is_valid(
        self,
        cache: ProjectCache,
        current_paths: Iterable[str],
        max_age: float | None = None,
        *,
        now: datetime | None = None,
    ) -> bool:
        return self.is_fresh(cache, max_age, now=now) and self.paths_match(cache, current_paths)

    async def clear(self) -> None:
        """Delete the cache file if present."""
        try:
            await asyncio.to_thread(self._path.unlink)
        except FileNotFoundError:
            return
        logger.info("Cache cleared")

    async def stats(self) -> CacheStats | None:
        """Size and last-modified time of the cache file, or None if absent."""
        try:
            stat = await asyncio.to_thread(self._path.stat)
        except FileNotFoundError:
            return None
        return CacheStats(
            size_bytes=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
        )
