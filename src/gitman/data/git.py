"""Query a repository's git state by invoking the git and gh command-line tools."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from typing import TYPE_CHECKING, NamedTuple

from gitman.data.tools import GIT, GITHUB_CLI
from gitman.errors import (
    CheckoutFailedError,
    CommandError,
    CommandFailedError,
    NotAGitRepositoryError,
    UncommittedChangesError,
)
from gitman.models.status import NO_BRANCH, GitBranch, GitCommit, GitStatus

if TYPE_CHECKING:
    from gitman.data.tools import ToolLocator
    from gitman.models.projects import Project
    from gitman.services.protocols import CommandRunnerProtocol

logger = logging.getLogger(__name__)

_LOG_SEPARATOR = "|||GITMAN|||"
_BRANCH_FORMAT = (
    "%(refname:short)|%(objectname:short)|%(committerdate:iso8601-strict)|%(HEAD)"
)
_PR_STATE_QUERY = ".createdBy[].state, .needsReview[].state"
_ERROR_MARKERS = ("error:", "fatal:")


class LastCommit(NamedTuple):
    hash: str | None
    message: str | None
    date: datetime | None


class AheadBehind(NamedTuple):
    ahead: int
    behind: int


_NO_COMMIT = LastCommit(None, None, None)


def is_git_repository(path: str) -> bool:
    """True when ``path`` holds git metadata (a ``.git`` dir, or file for worktrees)."""
    return os.path.exists(os.path.join(path, ".git"))


def _parse_iso_date(raw: str) -> datetime | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _split_lines(output: str) -> list[str]:
    return [line for line in output.splitlines() if line.strip()]


def parse_ahead_behind(output: str) -> AheadBehind:
    """Parse ``git rev-list --left-right --count HEAD...@{u}``.

    The left count is commits reachable only from HEAD (ahead of upstream),
    the right count those reachable only from the upstream (behind).
    """
    parts = output.split()
    if len(parts) < 2:
        return AheadBehind(0, 0)
    try:
        return AheadBehind(ahead=int(parts[0]), behind=int(parts[1]))
    except ValueError:
        return AheadBehind(0, 0)


def parse_branches(output: str) -> list[GitBranch]:
    """Parse ``git branch --format`` output produced with ``_BRANCH_FORMAT``."""
    branches: list[GitBranch] = []
    for line in _split_lines(output):
        parts = line.split("|")
        if len(parts) < 4:
            continue
        name, commit_hash, date_str, head = parts[0], parts[1], parts[2], parts[3]
        branches.append(
            GitBranch(
                name=name,
                is_current=head.strip() == "*",
                last_commit_date=_parse_iso_date(date_str),
                last_commit_hash=commit_hash or None,
            )
        )
    return branches


def parse_last_commit_log(output: str) -> tuple[str, datetime | None]:
    """Split ``%B<sep>%cd`` log output into message and commit date."""
    message, separator, date_str = output.strip().rpartition(_LOG_SEPARATOR)
    if not separator:
        return output.strip(), None
    return message.strip(), _parse_iso_date(date_str)


def parse_commit_history(output: str) -> list[GitCommit]:
    """Parse ``%H|%an|%ae|%s|%cd`` lines; entries without a valid date are dropped."""
    commits: list[GitCommit] = []
    for line in _split_lines(output):
        parts = line.split("|")
        if len(parts) < 5:
            continue
        date = _parse_iso_date(parts[-1])
        if date is None:
            continue
        commits.append(
            GitCommit(
                hash=parts[0][:7],
                author=parts[1],
                email=parts[2],
                message="|".join(parts[3:-1]),
                date=date,
            )
        )
    return commits


def count_open_pull_requests(output: str) -> int:
    return sum(1 for line in output.splitlines() if "OPEN" in line)


def checkout_error(output: str) -> str | None:
    """Return the tool's error text when checkout output carries an error marker."""
    for line in output.splitlines():
        if line.strip().lower().startswith(_ERROR_MARKERS):
            return output.strip()
    return None


class GitProbe:
    """Answers "what is the state of this repository" at full or light depth.

    Every sub-check degrades to a safe default when its command fails. The
    only probe-aborting condition is a missing ``.git``, checked before any
    command runs.
    """

    def __init__(self, runner: CommandRunnerProtocol, tools: ToolLocator) -> None:
        self._runner = runner
        self._tools = tools

    @staticmethod
    def is_git_repository(path: str) -> bool:
        return is_git_repository(path)

    async def get_status(self, project: Project) -> GitStatus:
        """Full probe: every sub-check, independent ones concurrently."""
        path = project.path
        if not is_git_repository(path):
            raise NotAGitRepositoryError(path)

        git = await self._tools.resolve(GIT)
        (
            branch,
            dirty,
            untracked,
            modified,
            staged,
            commit,
            branches,
            counts,
        ) = await asyncio.gather(
            self._current_branch(git, path),
            self._has_uncommitted_changes(git, path),
            self._file_list(git, path, "ls-files", "--others", "--exclude-standard"),
            self._file_list(git, path, "diff", "--name-only"),
            self._file_list(git, path, "diff", "--cached", "--name-only"),
            self._last_commit(git, path),
            self._branches(git, path),
            self._ahead_behind(git, path),
        )

        has_remote = await self.has_github_remote(path)
        pr_count = await self.pending_pull_request_count(path)

        return GitStatus(
            current_branch=branch,
            has_uncommitted_changes=dirty or bool(untracked or modified or staged),
            untracked_files=untracked,
            modified_files=modified,
            staged_files=staged,
            pending_pull_requests=pr_count,
            last_commit_hash=commit.hash,
            last_commit_message=commit.message,
            last_commit_date=commit.date,
            has_github_remote=has_remote,
            incoming_commits=counts.behind,
            outgoing_commits=counts.ahead,
            branches=branches,
        )

    async def get_light_status(
        self,
        project: Project,
        cached_status: GitStatus | None = None,
    ) -> GitStatus:
        """Light probe: branch, dirty flag and last commit only.

        Every other field comes from ``cached_status`` when given, otherwise
        from the model defaults.
        """
        path = project.path
        if not is_git_repository(path):
            raise NotAGitRepositoryError(path)

        git = await self._tools.resolve(GIT)
        branch, dirty, commit = await asyncio.gather(
            self._current_branch(git, path),
            self._has_uncommitted_changes(git, path),
            self._last_commit(git, path),
        )

        fresh = {
            "current_branch": branch,
            "has_uncommitted_changes": dirty,
            "last_commit_hash": commit.hash,
            "last_commit_message": commit.message,
            "last_commit_date": commit.date,
        }
        if cached_status is None:
            return GitStatus(**fresh)
        return cached_status.model_copy(update=fresh)

    async def has_github_remote(self, path: str) -> bool:
        if not is_git_repository(path):
            return False
        check = await self._tools.check(GIT)
        if not check.is_available or check.path is None:
            return False
        try:
            output = await self._runner.run(check.path, ["remote", "-v"], path)
        except CommandError:
            return False
        return "github.com" in output

    async def pending_pull_request_count(self, path: str) -> int:
        check = await self._tools.check(GITHUB_CLI)
        if not check.is_available or check.path is None:
            return 0
        try:
            output = await self._runner.run(
                check.path,
                ["pr", "status", "--json", "title,state", "-q", _PR_STATE_QUERY],
                path,
            )
        except CommandError:
            return 0
        return count_open_pull_requests(output)

    async def switch_branch(self, path: str, branch_name: str) -> None:
        """Check out ``branch_name``; refuses when the working tree is dirty.

        Raises:
            NotAGitRepositoryError: ``path`` is not a repository.
            UncommittedChangesError: The working tree has uncommitted changes.
            CheckoutFailedError: git reported an error during checkout.
        """
        if not is_git_repository(path):
            raise NotAGitRepositoryError(path)

        git = await self._tools.resolve(GIT)
        if await self._has_uncommitted_changes(git, path):
            raise UncommittedChangesError

        try:
            output = await self._runner.run(git, ["checkout", branch_name], path)
        except CommandFailedError as exc:
            raise CheckoutFailedError(exc.output) from exc
        except CommandError as exc:
            raise CheckoutFailedError(str(exc)) from exc

        message = checkout_error(output)
        if message is not None:
            raise CheckoutFailedError(message)
        logger.info("Switched %s to branch %s", path, branch_name)

    async def get_commit_history(self, path: str, limit: int = 10) -> list[GitCommit]:
        if not is_git_repository(path):
            raise NotAGitRepositoryError(path)

        git = await self._tools.resolve(GIT)
        try:
            output = await self._runner.run(
                git,
                [
                    "log",
                    f"-{max(limit, 1)}",
                    "--pretty=%H|%an|%ae|%s|%cd",
                    "--date=iso-strict",
                ],
                path,
            )
        except CommandError:
            return []
        return parse_commit_history(output)

    # ── sub-checks ──

    async def _current_branch(self, git: str, path: str) -> str:
        try:
            output = await self._runner.run(git, ["rev-parse", "--abbrev-ref", "HEAD"], path)
        except CommandError:
            # Empty repository: no HEAD yet.
            return NO_BRANCH
        return output.strip() or NO_BRANCH

    async def _has_uncommitted_changes(self, git: str, path: str) -> bool:
        try:
            output = await self._runner.run(git, ["status", "--porcelain"], path)
        except CommandError:
            return False
        return bool(output.strip())

    async def _file_list(self, git: str, path: str, *args: str) -> list[str]:
        try:
            output = await self._runner.run(git, list(args), path)
        except CommandError:
            return []
        return [line.strip() for line in _split_lines(output)]

    async def _last_commit(self, git: str, path: str) -> LastCommit:
        try:
            commit_hash = await self._runner.run(git, ["rev-parse", "HEAD"], path)
            log_output = await self._runner.run(
                git,
                ["log", "-1", f"--pretty=format:%B{_LOG_SEPARATOR}%cd", "--date=iso-strict"],
                path,
            )
        except CommandError:
            return _NO_COMMIT
        message, date = parse_last_commit_log(log_output)
        return LastCommit(commit_hash.strip() or None, message, date)

    async def _branches(self, git: str, path: str) -> list[GitBranch]:
        try:
            output = await self._runner.run(
                git,
                ["branch", "--sort=-committerdate", f"--format={_BRANCH_FORMAT}"],
                path,
            )
        except CommandError:
            return []
        return parse_branches(output)

    async def _ahead_behind(self, git: str, path: str) -> AheadBehind:
        try:
            output = await self._runner.run(
                git,
                ["rev-list", "--left-right", "--count", "HEAD...@{u}"],
                path,
            )
        except CommandError:
            # No upstream configured.
            return AheadBehind(0, 0)
        return parse_ahead_behind(output)
