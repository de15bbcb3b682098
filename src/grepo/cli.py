"""Command line interface for grepo."""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core.config import Config
from .core.errors import SearchError
from .core.logging import setup_logging
from .core.search import SearchAggregator
from .core.watch import WatchManager

console = Console()

RULE = "--------------------------"


def _echo(text: str) -> None:
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def _config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


def _aggregator(ctx: click.Context) -> SearchAggregator:
    config = _config(ctx)
    timeout = ctx.obj.get("timeout") or config.timeout
    return SearchAggregator(max_workers=config.max_workers, timeout=timeout)


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="GREPO_CONFIG",
    help="Config file to use (defaults to ~/.config/grepo/config.yml)",
)
@click.option("--timeout", type=float, help="Give up on repositories after this many seconds")
@click.option("--debug", is_flag=True, help="Show debug logging")
@click.version_option(package_name="grepo")
@click.pass_context
def cli(
    ctx: click.Context, config_file: Optional[Path], timeout: Optional[float], debug: bool
) -> None:
    """Search branches and commits across your watched git repositories.

    Repositories live under a base directory and are registered with
    'grepo watch add'. Every query runs over all watched repositories;
    repositories that cannot be opened are skipped with a warning.

    Examples:

      # Find branches with 'feat' in their name
      grepo branch search feat

      # Find commits mentioning a ticket, in message or author
      grepo commit search PROJ-123 --author
    """
    config = Config(config_file)
    setup_logging(debug=debug, log_file=config.log_file)
    ctx.obj = {"config": config, "timeout": timeout}


@cli.command("base-dir")
@click.argument("path", required=False)
@click.pass_context
def base_dir(ctx: click.Context, path: Optional[str]) -> None:
    """Show or set the base directory of watched repositories."""
    config = _config(ctx)
    if path is None:
        _echo(config.base_path)
        return
    previous = WatchManager(config).set_base_path(path)
    _echo(f"Updated base path from {previous} to {config.base_path}")


@cli.command("show-config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the saved settings."""
    for key, value in _config(ctx).to_dict().items():
        _echo(f"{key}: {value}")


@cli.command("config-path")
@click.pass_context
def config_path(ctx: click.Context) -> None:
    """Show the location of the config file."""
    _echo(str(_config(ctx).config_file))


@cli.group()
def watch() -> None:
    """Manage the list of watched repositories."""


@watch.command("add")
@click.argument("names")
@click.option("--reset", is_flag=True, help="Replace the watched list instead of extending it")
@click.pass_context
def watch_add(ctx: click.Context, names: str, reset: bool) -> None:
    """Watch repositories. NAMES is a comma separated list of directory names."""
    config = _config(ctx)
    result = WatchManager(config).add(names, reset=reset)
    for name in result.skipped:
        _echo(f"Skipping {name}: Not a valid repo")
    _echo(f"Updated repos: Now {config.repos}")


@watch.command("remove")
@click.argument("names")
@click.pass_context
def watch_remove(ctx: click.Context, names: str) -> None:
    """Stop watching repositories. NAMES is a comma separated list."""
    config = _config(ctx)
    result = WatchManager(config).remove(names)
    for name in result.skipped:
        _echo(f"Repo {name} is not found")
    _echo(f"Updated repos: Now {config.repos}")


@watch.command("list")
@click.pass_context
def watch_list(ctx: click.Context) -> None:
    """List watched repositories."""
    _echo(f"Watched Repos:\n{RULE}")
    for name in _config(ctx).repos:
        _echo(name)


@cli.group()
def branch() -> None:
    """Query branches of watched repositories."""


@branch.command("list")
@click.pass_context
def branch_list(ctx: click.Context) -> None:
    """List all local branches of every watched repository."""
    found = _aggregator(ctx).list_branches(_config(ctx).watched_set())
    for repo, branches in found.items():
        lines = "\n".join(b.branch_name for b in branches)
        _echo(f"Repo: {repo}\n{RULE}\n{lines}\n")


@branch.command("search")
@click.argument("pattern")
@click.pass_context
def branch_search(ctx: click.Context, pattern: str) -> None:
    """Find branches whose name contains PATTERN."""
    found = _aggregator(ctx).branch_search(_config(ctx).watched_set(), pattern)
    if not found:
        console.print(f"No branches matching '{escape(pattern)}'")
        return
    table = Table(title=f"Search pattern '{escape(pattern)}' found in repos")
    table.add_column("Repo")
    table.add_column("Branch")
    for repo, branches in found.items():
        for b in branches:
            table.add_row(escape(repo), escape(b.branch_name))
    console.print(table)


@branch.command("curr")
@click.pass_context
def branch_curr(ctx: click.Context) -> None:
    """Show the branch each watched repository is currently on."""
    current = _aggregator(ctx).current_branches(_config(ctx).watched_set())
    for repo, name in current.items():
        _echo(f"Repo: {repo}\n{RULE}\n{name}\n")


@cli.group()
def commit() -> None:
    """Query commits of watched repositories."""


@commit.command("search")
@click.argument("pattern")
@click.option("--author", "-a", is_flag=True, help="Also match PATTERN against commit authors")
@click.pass_context
def commit_search(ctx: click.Context, pattern: str, author: bool) -> None:
    """Find commits whose message contains PATTERN.

    Every branch is walked over its full history, so a commit reachable from
    several branches is listed once per branch.
    """
    try:
        matches = _aggregator(ctx).commit_search(
            _config(ctx).watched_set(), pattern, include_author=author
        )
    except SearchError as e:
        console.print(f"[red]Error: {escape(str(e))}")
        raise click.Abort()

    if not matches:
        console.print(f"No commits matching '{escape(pattern)}'")
        return
    table = Table(title=f"Commits matching '{escape(pattern)}'")
    table.add_column("Repo")
    table.add_column("Branch")
    table.add_column("Commit")
    table.add_column("Author")
    table.add_column("Message")
    for match in matches:
        table.add_row(
            escape(match.repo_name),
            escape(match.branch_name),
            match.commit.id[:10],
            escape(match.commit.author),
            escape(match.commit.message.splitlines()[0] if match.commit.message else ""),
        )
    console.print(table)


@cli.command("scan-base-dir")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def scan_base_dir(ctx: click.Context, yes: bool) -> None:
    """Replace the watched list with the repositories found in the base directory."""
    config = _config(ctx)
    if not yes and not click.confirm(
        "This will reset your current watched repos with directories found in the "
        f"base path ({config.base_path}). Are you sure?"
    ):
        return
    try:
        result = WatchManager(config).scan_base_dir()
    except OSError as e:
        console.print(f"[red]Error: {escape(str(e))}")
        raise click.Abort()
    for name in result.skipped:
        _echo(f"Skipping {name}: Not a valid repo")
    _echo(f"Watched repos:\n{RULE}")
    for name in result.changed:
        _echo(name)
