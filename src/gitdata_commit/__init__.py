import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

import aiohttp
import click

from .config import GitHubConfig
from .errors import (
    ConfigurationError,
    DecodingFailure,
    GitHubError,
    InvalidBranch,
    InvalidParameter,
    RefUpdateConflict,
    UnexpectedStatus,
)
from .github import Author, GitDataAPI, TreeItem
from .logging_config import configure_logging, verbosity_to_level
from .orchestrator import BatchCommit, CommitResult, CommitState, new_commit_updating_items
from .updater import BatchItemUpdater, FunctionItemUpdater, ItemUpdater, RegexItemUpdater

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def _run(ctx: click.Context, action: Callable[[GitDataAPI], Awaitable[Any]]) -> Any:
    """Load configuration, open a session and run ``action`` against it."""
    try:
        config = GitHubConfig.from_env(ctx.obj["env_file"])
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    async def runner():
        async with GitDataAPI.connect(config) as api:
            return await action(api)

    try:
        return asyncio.run(runner())
    except GitHubError as e:
        raise click.ClickException(str(e)) from e
    except aiohttp.ClientError as e:
        raise click.ClickException(f"Connection error: {e}") from e


@click.group()
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path(".env"),
    show_default=True,
    help="Optional .env file with GITHUB_USERNAME, GITHUB_TOKEN, GITHUB_REPO_URL",
)
@click.option("-v", "--verbose", count=True)
@click.option("--json-logs", is_flag=True, help="Log structured JSON to stderr")
@click.version_option(__version__)
@click.pass_context
def main(ctx: click.Context, env_file: Path, verbose: int, json_logs: bool) -> None:
    """Atomic multi-file commits through the Git Data API"""
    configure_logging(verbosity_to_level(verbose), json_output=json_logs)
    ctx.obj = {"env_file": env_file}


@main.command()
@click.pass_context
def branches(ctx: click.Context) -> None:
    """List branches"""
    for branch in _run(ctx, lambda api: api.branches()):
        click.echo(branch.name)


@main.command()
@click.pass_context
def tags(ctx: click.Context) -> None:
    """List tags with the commit they point at"""
    for tag in _run(ctx, lambda api: api.tags()):
        click.echo(f"{tag.commit.sha[:8]} {tag.name}")


@main.command()
@click.argument("branch")
@click.option("--path", default=None, help="Only commits touching this path")
@click.option("--per-page", type=int, default=20, show_default=True)
@click.option("--page", type=int, default=None)
@click.pass_context
def log(ctx: click.Context, branch: str, path: str, per_page: int, page: int) -> None:
    """Show recent commits on BRANCH"""
    commits = _run(
        ctx, lambda api: api.commits(sha=branch, page=page, per_page=per_page, path=path)
    )
    for commit in commits:
        subject = commit.commit.message.splitlines()[0] if commit.commit else ""
        click.echo(f"{commit.sha[:8]} {subject}")


@main.command(name="ls")
@click.argument("branch")
@click.argument("path", default="")
@click.pass_context
def list_contents(ctx: click.Context, branch: str, path: str) -> None:
    """List the directory entries at PATH on BRANCH"""
    for entry in _run(ctx, lambda api: api.contents(path, branch)):
        if entry.type == "symlink":
            click.echo(f"symlink   {entry.name} -> {entry.target_path}")
        elif entry.type == "submodule":
            click.echo(f"submodule {entry.name} ({entry.url})")
        else:
            click.echo(f"{entry.type:<9} {entry.name}")


@main.command()
@click.argument("branch")
@click.option(
    "--glob",
    "pattern",
    required=True,
    help="Paths to rewrite, e.g. 'docs/*.md' ('*' stays in one directory, '**' spans several)",
)
@click.option("--regex", required=True, help="Regular expression to search for")
@click.option("--replacement", required=True, help="re.sub replacement string")
@click.option("-m", "--message", required=True, help="Commit message")
@click.option("--author-name", required=True)
@click.option("--author-email", required=True)
@click.option(
    "--allow-missing",
    is_flag=True,
    help="Do not fail when a selected file has no match",
)
@click.pass_context
def replace(
    ctx: click.Context,
    branch: str,
    pattern: str,
    regex: str,
    replacement: str,
    message: str,
    author_name: str,
    author_email: str,
    allow_missing: bool,
) -> None:
    """Rewrite matching files on BRANCH in a single commit"""
    try:
        updater = RegexItemUpdater(pattern, regex, replacement, require_match=not allow_missing)
    except InvalidParameter as e:
        raise click.BadParameter(str(e), param_hint="--regex") from e
    author = Author(name=author_name, email=author_email)

    async def action(api: GitDataAPI) -> CommitResult:
        return await new_commit_updating_items(
            api,
            updater,
            branch,
            author,
            message,
            max_concurrency=api.max_concurrency,
        )

    result = _run(ctx, action)
    if not result.changed:
        click.echo("No changes")
        return
    click.echo(f"{branch} -> {result.commit_sha}")
    for path in result.updated_paths:
        click.echo(f"  M {path}")


__all__ = [
    "main",
    "GitHubConfig",
    "GitDataAPI",
    "Author",
    "TreeItem",
    "ItemUpdater",
    "FunctionItemUpdater",
    "RegexItemUpdater",
    "BatchItemUpdater",
    "BatchCommit",
    "CommitResult",
    "CommitState",
    "new_commit_updating_items",
    "GitHubError",
    "InvalidBranch",
    "InvalidParameter",
    "UnexpectedStatus",
    "DecodingFailure",
    "RefUpdateConflict",
    "ConfigurationError",
]


if __name__ == "__main__":
    main()
