"""Error taxonomy for probes, commands, and the cache."""

from __future__ import annotations


class GitmanError(Exception):
    """Base error for gitman."""

    exit_code: int = 1


class NotAGitRepositoryError(GitmanError):
    """Directory lacks git metadata; aborts the whole probe."""

    exit_code = 2

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a Git repository: {path}")
        self.path = path


class CommandError(GitmanError):
    """An external command could not produce a result."""


class CommandLaunchError(CommandError):
    """The program could not be started at all."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"Failed to launch {command}: {reason}")
        self.command = command
        self.reason = reason


class CommandFailedError(CommandError):
    """The program ran but exited non-zero."""

    def __init__(self, command: str, exit_code: int, output: str) -> None:
        super().__init__(f"Command failed ({command}, exit {exit_code}): {output.strip()}")
        self.command = command
        self.exit_code = exit_code
        self.output = output


class UncommittedChangesError(GitmanError):
    """Branch switch refused because the working tree is dirty."""

    def __init__(self) -> None:
        super().__init__("You have uncommitted changes. Please commit or stash them first.")


class CheckoutFailedError(GitmanError):
    """git reported an error while checking out a branch."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to checkout branch: {message.strip()}")
        self.message = message


class CacheCorruptedError(GitmanError):
    """The cache file exists but cannot be decoded."""


class ProbeTimeoutError(GitmanError):
    """A supervised single-project probe did not finish in time."""

    def __init__(self, path: str, timeout: float) -> None:
        super().__init__(f"Status probe for {path} timed out after {timeout:g}s")
        self.path = path
        self.timeout = timeout


def exit_code_for_exception(exc: BaseException) -> int:
    """Resolve the CLI exit code for an exception."""
    if isinstance(exc, GitmanError):
        return exc.exit_code
    return 1
