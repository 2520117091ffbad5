"""Run external programs off the event loop and capture their output."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from collections.abc import Sequence

from gitman.config import DEFAULT_TOOL_SEARCH_DIRS
from gitman.errors import CommandFailedError, CommandLaunchError

logger = logging.getLogger(__name__)


def _child_environment(extra_dirs: Sequence[str]) -> dict[str, str]:
    """Copy the process environment, appending tool dirs missing from PATH."""
    env = dict(os.environ)
    current = env.get("PATH", "")
    present = set(current.split(os.pathsep)) if current else set()
    missing = [d for d in extra_dirs if d not in present]
    if missing:
        env["PATH"] = os.pathsep.join([p for p in (current, *missing) if p])
    return env


class CommandRunner:
    """Invoke an executable and return its combined stdout/stderr.

    The blocking wait happens in a worker thread so the caller's event loop
    keeps running while a slow or hung subprocess is outstanding. There is no
    retry and no timeout here.
    """

    def __init__(self, search_dirs: Sequence[str] = DEFAULT_TOOL_SEARCH_DIRS) -> None:
        self._search_dirs = tuple(search_dirs)

    async def run(
        self,
        command: str,
        arguments: Sequence[str],
        directory: str | None = None,
    ) -> str:
        """Run ``command`` with ``arguments`` in ``directory``.

        Returns:
            The captured output text.

        Raises:
            CommandLaunchError: The program could not be started.
            CommandFailedError: The program exited with a non-zero status.
        """
        return await asyncio.to_thread(self._run_blocking, command, list(arguments), directory)

    def _run_blocking(self, command: str, arguments: list[str], directory: str | None) -> str:
        try:
            proc = subprocess.run(
                [command, *arguments],
                cwd=directory,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=_child_environment(self._search_dirs),
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as exc:
            raise CommandLaunchError(command, str(exc)) from exc

        output = proc.stdout or ""
        if proc.returncode != 0:
            logger.debug("%s %s exited %s in %s", command, arguments, proc.returncode, directory)
            raise CommandFailedError(command, proc.returncode, output)
        return output
