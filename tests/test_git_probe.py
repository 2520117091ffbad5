"""Tests for git output parsing and the status probe."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from gitman.data.git import (
    GitProbe,
    checkout_error,
    count_open_pull_requests,
    parse_ahead_behind,
    parse_branches,
    parse_commit_history,
    parse_last_commit_log,
)
from gitman.errors import (
    CheckoutFailedError,
    CommandFailedError,
    CommandLaunchError,
    NotAGitRepositoryError,
    UncommittedChangesError,
)
from gitman.models.projects import Project
from gitman.models.status import NO_BRANCH, GitStatus

from conftest import FakeRunner, FakeTools, make_repo

HEAD_HASH = "4f2a9c1e8b7d6a5f4e3d2c1b0a9f8e7d6c5b4a39"


def _healthy_responses() -> dict[tuple[str, ...], str | Exception]:
    return {
        ("rev-parse", "--abbrev-ref", "HEAD"): "feature/login\n",
        ("status", "--porcelain"): " M src/app.py\n?? notes.txt\n",
        ("ls-files", "--others"): "notes.txt\n",
        ("diff", "--cached"): "",
        ("diff", "--name-only"): "src/app.py\n",
        ("rev-parse", "HEAD"): f"{HEAD_HASH}\n",
        ("log", "-1"): "Add login form\n\nLonger body|||GITMAN|||2026-03-01T10:00:00+00:00",
        ("branch",): (
            "feature/login|4f2a9c1|2026-03-01T10:00:00+00:00|*\n"
            "main|9e8d7c6|2026-02-20T08:30:00+00:00| \n"
        ),
        ("rev-list",): "3\t1\n",
        ("remote", "-v"): "origin\tgit@github.com:me/app.git (fetch)\n",
        ("pr", "status"): "OPEN\nMERGED\nOPEN\n",
    }


class TestParsers:
    def test_ahead_behind_left_is_ahead(self) -> None:
        counts = parse_ahead_behind("3\t1\n")
        assert counts.ahead == 3
        assert counts.behind == 1

    def test_ahead_behind_garbage(self) -> None:
        assert parse_ahead_behind("") == (0, 0)
        assert parse_ahead_behind("x y") == (0, 0)

    def test_branches(self) -> None:
        branches = parse_branches(
            "main|abc1234|2026-02-20T08:30:00+00:00| \n"
            "dev|def5678|2026-02-21T08:30:00Z|*\n"
            "broken line\n"
        )
        assert [b.name for b in branches] == ["main", "dev"]
        assert branches[1].is_current is True
        assert branches[0].is_current is False
        assert branches[1].last_commit_date == datetime(2026, 2, 21, 8, 30, tzinfo=UTC)
        assert branches[0].last_commit_hash == "abc1234"

    def test_last_commit_log_multiline_message(self) -> None:
        message, date = parse_last_commit_log(
            "Subject\n\nBody line|||GITMAN|||2026-03-01T10:00:00+00:00\n"
        )
        assert message == "Subject\n\nBody line"
        assert date == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    def test_commit_history_keeps_pipes_in_message(self) -> None:
        commits = parse_commit_history(
            f"{HEAD_HASH}|Ada|ada@example.com|Fix a|b parsing|2026-03-01T10:00:00+00:00\n"
            "deadbeef|Bob|bob@example.com|No date|not-a-date\n"
        )
        assert len(commits) == 1
        assert commits[0].hash == HEAD_HASH[:7]
        assert commits[0].message == "Fix a|b parsing"
        assert commits[0].email == "ada@example.com"

    def test_count_open_pull_requests(self) -> None:
        assert count_open_pull_requests("OPEN\nCLOSED\nOPEN\n") == 2
        assert count_open_pull_requests("") == 0

    def test_checkout_error_markers(self) -> None:
        assert checkout_error("Switched to branch 'error-handling'\n") is None
        assert checkout_error("error: pathspec 'nope' did not match\n") is not None
        assert checkout_error("fatal: not a git repository\n") is not None


class TestGetStatus:
    @pytest.mark.asyncio
    async def test_full_status(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner(_healthy_responses())
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        status = await probe.get_status(Project(path=str(repo), is_git_repository=True))

        assert status.current_branch == "feature/login"
        assert status.has_uncommitted_changes is True
        assert status.untracked_files == ["notes.txt"]
        assert status.modified_files == ["src/app.py"]
        assert status.staged_files == []
        assert status.last_commit_hash == HEAD_HASH
        assert status.last_commit_message == "Add login form\n\nLonger body"
        assert status.last_commit_date == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
        assert [b.name for b in status.branches] == ["feature/login", "main"]
        assert status.outgoing_commits == 3
        assert status.incoming_commits == 1
        assert status.has_github_remote is True
        assert status.pending_pull_requests == 2
        assert all(directory == str(repo) for _, _, directory in runner.calls)

    @pytest.mark.asyncio
    async def test_not_a_repository_runs_nothing(self, tmp_path: Path) -> None:
        runner = FakeRunner()
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        with pytest.raises(NotAGitRepositoryError):
            await probe.get_status(Project(path=str(tmp_path)))
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_empty_repository_defaults(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "fresh")
        no_head = CommandFailedError("git", 128, "fatal: ambiguous argument 'HEAD'")
        runner = FakeRunner(
            {
                ("rev-parse",): no_head,
                ("log",): no_head,
                ("rev-list",): CommandFailedError("git", 128, "fatal: no upstream"),
                ("remote", "-v"): "",
            }
        )
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        status = await probe.get_status(Project(path=str(repo), is_git_repository=True))

        assert status.current_branch == NO_BRANCH
        assert status.last_commit_hash is None
        assert status.last_commit_message is None
        assert status.incoming_commits == 0
        assert status.outgoing_commits == 0
        assert status.has_uncommitted_changes is False
        assert status.has_github_remote is False

    @pytest.mark.asyncio
    async def test_dirty_flag_follows_file_lists(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "staged")
        runner = FakeRunner(
            {
                ("status", "--porcelain"): CommandLaunchError("git", "gone"),
                ("diff", "--cached"): "README.md\n",
            }
        )
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        status = await probe.get_status(Project(path=str(repo), is_git_repository=True))

        assert status.staged_files == ["README.md"]
        assert status.has_uncommitted_changes is True

    @pytest.mark.asyncio
    async def test_without_gh_no_pull_requests(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner(_healthy_responses())
        probe = GitProbe(runner, FakeTools(missing=["gh"]))  # type: ignore[arg-type]

        status = await probe.get_status(Project(path=str(repo), is_git_repository=True))

        assert status.pending_pull_requests == 0
        assert not runner.called_with("pr", "status")


class TestLightStatus:
    @pytest.mark.asyncio
    async def test_copies_unchecked_fields_from_cache(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner(
            {
                ("rev-parse", "--abbrev-ref", "HEAD"): "main\n",
                ("status", "--porcelain"): "",
                ("rev-parse", "HEAD"): f"{HEAD_HASH}\n",
                ("log", "-1"): "Merge|||GITMAN|||2026-03-02T09:00:00+00:00",
            }
        )
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]
        cached = GitStatus(
            current_branch="dev",
            has_uncommitted_changes=True,
            untracked_files=["old.txt"],
            pending_pull_requests=4,
            outgoing_commits=2,
            has_github_remote=True,
        )

        status = await probe.get_light_status(
            Project(path=str(repo), is_git_repository=True), cached
        )

        assert status.current_branch == "main"
        assert status.has_uncommitted_changes is False
        assert status.last_commit_message == "Merge"
        assert status.untracked_files == ["old.txt"]
        assert status.pending_pull_requests == 4
        assert status.outgoing_commits == 2
        assert status.has_github_remote is True
        assert not runner.called_with("ls-files")
        assert not runner.called_with("pr")
        assert not runner.called_with("rev-list")

    @pytest.mark.asyncio
    async def test_without_cache_uses_defaults(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner({("rev-parse", "--abbrev-ref", "HEAD"): "trunk\n"})
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        status = await probe.get_light_status(Project(path=str(repo), is_git_repository=True))

        assert status.current_branch == "trunk"
        assert status.pending_pull_requests == 0
        assert status.branches == []


class TestSwitchBranch:
    @pytest.mark.asyncio
    async def test_refuses_when_dirty(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner({("status", "--porcelain"): " M file.py\n"})
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        with pytest.raises(UncommittedChangesError):
            await probe.switch_branch(str(repo), "main")
        assert not runner.called_with("checkout")

    @pytest.mark.asyncio
    async def test_branch_name_containing_error_succeeds(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner({("checkout",): "Switched to branch 'error-handling'\n"})
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        await probe.switch_branch(str(repo), "error-handling")

        assert runner.called_with("checkout", "error-handling")

    @pytest.mark.asyncio
    async def test_checkout_failure(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner(
            {("checkout",): CommandFailedError("git", 1, "error: pathspec 'nope' did not match")}
        )
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        with pytest.raises(CheckoutFailedError, match="pathspec"):
            await probe.switch_branch(str(repo), "nope")

    @pytest.mark.asyncio
    async def test_error_marker_in_successful_output(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner({("checkout",): "error: cannot lock ref\n"})
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        with pytest.raises(CheckoutFailedError, match="cannot lock ref"):
            await probe.switch_branch(str(repo), "dev")

    @pytest.mark.asyncio
    async def test_not_a_repository(self, tmp_path: Path) -> None:
        probe = GitProbe(FakeRunner(), FakeTools())  # type: ignore[arg-type]
        with pytest.raises(NotAGitRepositoryError):
            await probe.switch_branch(str(tmp_path), "main")


class TestHistoryAndRemote:
    @pytest.mark.asyncio
    async def test_commit_history_limit(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner(
            {("log",): f"{HEAD_HASH}|Ada|ada@example.com|Initial|2026-03-01T10:00:00+00:00\n"}
        )
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        commits = await probe.get_commit_history(str(repo), limit=5)

        assert [c.message for c in commits] == ["Initial"]
        assert runner.called_with("log", "-5")

    @pytest.mark.asyncio
    async def test_commit_history_failure_is_empty(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner({("log",): CommandFailedError("git", 128, "fatal")})
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]
        assert await probe.get_commit_history(str(repo)) == []

    @pytest.mark.asyncio
    async def test_remote_checks(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path, "app")
        runner = FakeRunner({("remote", "-v"): "origin\thttps://gitlab.com/me/app.git (fetch)\n"})
        probe = GitProbe(runner, FakeTools())  # type: ignore[arg-type]

        assert await probe.has_github_remote(str(repo)) is False
        assert await probe.has_github_remote(str(tmp_path)) is False
        no_git = GitProbe(runner, FakeTools(missing=["git"]))  # type: ignore[arg-type]
        assert await no_git.has_github_remote(str(repo)) is False
