"""Service container with DI wiring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from gitman.data.cache import CacheStore
from gitman.data.changes import ChangeDetector
from gitman.data.git import GitProbe
from gitman.data.runner import CommandRunner
from gitman.data.settings import SettingsStore
from gitman.data.tools import ToolLocator
from gitman.services.project_service import ProjectService
from gitman.services.scanner import ProjectScanner

if TYPE_CHECKING:
    from gitman.config import Config


@dataclass
class ServiceContainer:
    """Holds all application services. Built once at startup, immutable."""

    config: Config
    settings: SettingsStore
    cache_store: CacheStore
    tools: ToolLocator
    probe: GitProbe
    scanner: ProjectScanner
    project_service: ProjectService

    @classmethod
    def create(cls, config: Config) -> ServiceContainer:
        """Factory that wires all dependencies."""
        runner = CommandRunner(config.tool_search_dirs)
        tools = ToolLocator(runner, config.tool_search_dirs)
        probe = GitProbe(runner, tools)
        settings = SettingsStore(config.settings_path)
        cache_store = CacheStore(
            config.cache_path,
            throttle_seconds=config.save_throttle_seconds,
            max_age_seconds=config.cache_max_age_seconds,
        )
        scanner = ProjectScanner(
            config,
            probe,
            cache_store,
            settings,
            change_detector=ChangeDetector(),
        )
        project_service = ProjectService(scanner, probe, tools, cache_store)

        return cls(
            config=config,
            settings=settings,
            cache_store=cache_store,
            tools=tools,
            probe=probe,
            scanner=scanner,
            project_service=project_service,
        )

    async def close(self) -> None:
        """Cancel background work and persist the tree."""
        await self.scanner.shutdown()
