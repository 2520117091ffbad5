"""Typer CLI for gitman: scan, status and branch commands."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from result import Err

from gitman.config import Config
from gitman.errors import GitmanError, exit_code_for_exception
from gitman.models.cache import CacheStats
from gitman.models.projects import Project
from gitman.models.scanning import DependencyStatus
from gitman.models.status import GitStatus
from gitman.services.container import ServiceContainer

app = typer.Typer(
    name="gitman",
    help="Monitor the git repositories under your project folders.",
    no_args_is_help=True,
)
paths_app = typer.Typer(help="Manage monitored paths.", no_args_is_help=True)
cache_app = typer.Typer(help="Inspect or clear the project cache.", no_args_is_help=True)
app.add_typer(paths_app, name="paths")
app.add_typer(cache_app, name="cache")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _setup_logging(*, is_verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if is_verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


@app.callback()
def main(
    ctx: typer.Context,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Directory for the cache and settings files"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Monitor the git repositories under your project folders."""
    _setup_logging(is_verbose=verbose)
    ctx.obj = Config(cache_dir=cache_dir) if cache_dir is not None else Config()


def _config(ctx: typer.Context) -> Config:
    config = ctx.obj
    return config if isinstance(config, Config) else Config()


def _fail(message: str, exit_code: int = 1) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(exit_code)


# ── rendering ──


def _format_status(status: GitStatus) -> str:
    parts = [status.current_branch]
    if status.has_uncommitted_changes:
        parts.append("uncommitted changes")
    if status.outgoing_commits:
        parts.append(f"↑{status.outgoing_commits}")
    if status.incoming_commits:
        parts.append(f"↓{status.incoming_commits}")
    if status.pending_pull_requests:
        parts.append(f"{status.pending_pull_requests} PR(s)")
    return ", ".join(parts)


def _render_tree(projects: Sequence[Project], depth: int = 0) -> list[str]:
    lines: list[str] = []
    for project in projects:
        indent = "  " * depth
        if project.is_git_repository:
            detail = _format_status(project.git_status) if project.git_status else "no status"
            lines.append(f"{indent}{project.name} [{detail}]")
        else:
            lines.append(f"{indent}{project.name}/")
        lines.extend(_render_tree(project.sub_projects, depth + 1))
    return lines


def _echo_tree(projects: Sequence[Project]) -> None:
    if not projects:
        typer.echo("No projects. Add a folder with 'gitman paths add PATH'.")
        return
    for line in _render_tree(projects):
        typer.echo(line)


def _echo_status(status: GitStatus) -> None:
    typer.echo(f"Branch:      {status.current_branch}")
    typer.echo(f"Health:      {status.health_status.value}")
    typer.echo(f"Uncommitted: {'yes' if status.has_uncommitted_changes else 'no'}")
    typer.echo(f"Modified:    {len(status.modified_files)}")
    typer.echo(f"Staged:      {len(status.staged_files)}")
    typer.echo(f"Untracked:   {len(status.untracked_files)}")
    typer.echo(f"Ahead:       {status.outgoing_commits}")
    typer.echo(f"Behind:      {status.incoming_commits}")
    typer.echo(f"Open PRs:    {status.pending_pull_requests}")
    if status.last_commit_hash:
        typer.echo(f"Last commit: {status.last_commit_hash[:7]} {status.last_commit_message}")


# ── scanning ──


@app.command()
def scan(ctx: typer.Context) -> None:
    """Discover and fully probe every monitored repository."""
    asyncio.run(_do_scan(_config(ctx)))


async def _do_scan(config: Config) -> None:
    container = ServiceContainer.create(config)
    try:
        typer.echo(f"Scanning {len(container.settings.monitored_paths)} monitored path(s)...")
        result = await container.scanner.full_scan()
        _echo_tree(container.scanner.projects)
        typer.echo(f"\n{result.probed} of {result.repositories} repositories probed")
    finally:
        await container.close()


@app.command()
def refresh(ctx: typer.Context) -> None:
    """Load the cache and refresh only repositories that changed."""
    asyncio.run(_do_refresh(_config(ctx)))


async def _do_refresh(config: Config) -> None:
    container = ServiceContainer.create(config)
    try:
        result = await container.scanner.start()
        await container.scanner.wait_for_background()
        _echo_tree(container.scanner.projects)
        source = "cache" if result.from_cache else "full scan"
        typer.echo(f"\n{result.repositories} repositories ({source})")
    finally:
        await container.close()


@app.command()
def status(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Repository directory")],
    light: Annotated[bool, typer.Option("--light", help="Only branch, dirty flag and last commit")] = False,
) -> None:
    """Show the git status of one repository."""
    exit_code = asyncio.run(_do_status(_config(ctx), path, light))
    if exit_code:
        raise typer.Exit(exit_code)


async def _do_status(config: Config, path: str, light: bool) -> int:
    container = ServiceContainer.create(config)
    resolved = container.project_service.resolve(path)
    if isinstance(resolved, Err):
        typer.echo(f"Error: {resolved.err_value}", err=True)
        return 1
    try:
        git_status = await container.scanner.fetch_status(resolved.ok_value, light=light)
    except GitmanError as exc:
        typer.echo(f"Error: {exc}", err=True)
        return exit_code_for_exception(exc)
    _echo_status(git_status)
    return 0


@app.command()
def switch(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Repository directory")],
    branch: Annotated[str, typer.Argument(help="Branch to check out")],
) -> None:
    """Check out a branch, refusing when the working tree is dirty."""
    error = asyncio.run(_do_switch(_config(ctx), path, branch))
    if error:
        raise _fail(error)
    typer.echo(f"Switched to branch {branch}")


async def _do_switch(config: Config, path: str, branch: str) -> str | None:
    container = ServiceContainer.create(config)
    result = await container.project_service.switch_branch(path, branch)
    if isinstance(result, Err):
        return result.err_value
    return None


@app.command()
def log(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Repository directory")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Number of commits")] = 10,
) -> None:
    """Show recent commits of a repository."""
    asyncio.run(_do_log(_config(ctx), path, limit))


async def _do_log(config: Config, path: str, limit: int) -> None:
    container = ServiceContainer.create(config)
    result = await container.project_service.commit_history(path, limit)
    if isinstance(result, Err):
        raise _fail(result.err_value)
    for commit in result.ok_value:
        typer.echo(f"{commit.hash} {commit.date:%Y-%m-%d} {commit.author}: {commit.message}")


@app.command()
def deps(ctx: typer.Context) -> None:
    """Check that git and the GitHub CLI are installed."""
    missing = asyncio.run(_do_deps(_config(ctx)))
    if not missing:
        typer.echo("All dependencies found.")
        return
    for dependency in missing:
        typer.echo(f"{dependency.message} {dependency.install_instruction}")
    raise typer.Exit(1)


async def _do_deps(config: Config) -> list[DependencyStatus]:
    container = ServiceContainer.create(config)
    result = await container.project_service.check_dependencies()
    return result.ok_value if not isinstance(result, Err) else []


@app.command()
def ignore(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Directory to stop monitoring")],
) -> None:
    """Exclude a directory from discovery."""
    asyncio.run(_do_ignore(_config(ctx), os.path.abspath(os.path.expanduser(path))))
    typer.echo(f"Ignoring {path}")


async def _do_ignore(config: Config, path: str) -> None:
    container = ServiceContainer.create(config)
    await container.scanner.ignore_path(path)


# ── paths ──


@paths_app.command("list")
def paths_list(ctx: typer.Context) -> None:
    """List monitored paths."""
    container = ServiceContainer.create(_config(ctx))
    for path in container.settings.monitored_paths:
        typer.echo(path)


@paths_app.command("add")
def paths_add(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Folder to monitor")],
) -> None:
    """Add a folder to monitor."""
    resolved = path.expanduser().resolve()
    if not resolved.is_dir():
        raise _fail(f"Directory not found: {resolved}")
    container = ServiceContainer.create(_config(ctx))
    if container.settings.add_monitored_path(str(resolved)):
        typer.echo(f"Added {resolved}")
    else:
        typer.echo(f"Already monitoring {resolved}")


@paths_app.command("remove")
def paths_remove(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Folder to stop monitoring")],
) -> None:
    """Stop monitoring a folder."""
    resolved = path.expanduser().resolve()
    container = ServiceContainer.create(_config(ctx))
    if not container.settings.remove_monitored_path(str(resolved)):
        raise _fail(f"Not monitored: {resolved}")
    typer.echo(f"Removed {resolved}")


# ── cache ──


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show cache file size and age."""
    stats = asyncio.run(_do_cache_stats(_config(ctx)))
    if stats is None:
        typer.echo("No cache file.")
        return
    typer.echo(f"Size:          {stats.formatted_size}")
    if stats.last_modified is not None:
        typer.echo(f"Last modified: {stats.last_modified.isoformat(timespec='seconds')}")


async def _do_cache_stats(config: Config) -> CacheStats | None:
    container = ServiceContainer.create(config)
    result = await container.project_service.cache_stats()
    if isinstance(result, Err):
        raise _fail(result.err_value)
    return result.ok_value


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Delete the cache file."""
    asyncio.run(_do_cache_clear(_config(ctx)))
    typer.echo("Cache cleared.")


async def _do_cache_clear(config: Config) -> None:
    container = ServiceContainer.create(config)
    result = await container.project_service.clear_cache()
    if isinstance(result, Err):
        raise _fail(result.err_value)
