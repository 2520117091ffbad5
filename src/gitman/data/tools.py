"""Locate external executables without relying on the process PATH."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from typing import TYPE_CHECKING

from gitman.config import DEFAULT_TOOL_SEARCH_DIRS
from gitman.errors import CommandError
from gitman.models.scanning import DependencyKind, DependencyStatus, ToolCheck

if TYPE_CHECKING:
    from gitman.services.protocols import CommandRunnerProtocol

logger = logging.getLogger(__name__)

GIT = "git"
GITHUB_CLI = "gh"
_WHICH = "/usr/bin/which"


class ToolLocator:
    """Resolve executables to absolute paths, caching answers per instance.

    Standard install directories are searched first; only then is the shell
    asked via ``which``. GUI-launched processes often inherit a PATH without
    Homebrew directories, so the fixed list comes first.
    """

    def __init__(
        self,
        runner: CommandRunnerProtocol,
        search_dirs: Sequence[str] = DEFAULT_TOOL_SEARCH_DIRS,
    ) -> None:
        self._runner = runner
        self._search_dirs = tuple(search_dirs)
        self._checks: dict[str, ToolCheck] = {}

    async def check(self, command: str) -> ToolCheck:
        """Return availability and absolute path for ``command``."""
        cached = self._checks.get(command)
        if cached is not None:
            return cached
        result = await self._locate(command)
        self._checks[command] = result
        return result

    async def resolve(self, command: str) -> str:
        """Absolute path for ``command``, or the bare name when unresolved."""
        result = await self.check(command)
        return result.path or command

    def clear(self) -> None:
        self._checks.clear()

    async def check_dependencies(self) -> list[DependencyStatus]:
        """Report which required tools are missing."""
        git, gh = await asyncio.gather(self.check(GIT), self.check(GITHUB_CLI))
        missing: list[DependencyStatus] = []
        if not git.is_available:
            missing.append(DependencyStatus(DependencyKind.MISSING_GIT, git.path))
        if not gh.is_available:
            missing.append(DependencyStatus(DependencyKind.MISSING_GITHUB_CLI, gh.path))
        if missing:
            logger.warning("Missing dependencies: %s", [m.kind.value for m in missing])
        return missing

    async def _locate(self, command: str) -> ToolCheck:
        for directory in self._search_dirs:
            candidate = os.path.join(directory, command)
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return ToolCheck(is_available=True, path=candidate)

        try:
            output = await self._runner.run(_WHICH, [command])
        except CommandError:
            logger.debug("which %s failed", command)
            return ToolCheck(is_available=False)

        resolved = output.strip()
        if not resolved:
            return ToolCheck(is_available=False)
        return ToolCheck(is_available=True, path=resolved)
