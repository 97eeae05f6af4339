"""``repoweave log``: show commit history of a branch."""

from __future__ import annotations

import click

from repoweave.cli.console import console
from repoweave.cli.context import ExitCode, async_command
from repoweave.cli.helpers import (
    build_router,
    fail,
    get_cli_context,
    read_engine,
    repo_from_urls,
    resolve_branch,
)
from repoweave.cli.output import commits_table, format_error, format_json
from repoweave.exceptions import RepoWeaveError
from repoweave.history import CommitLoader


@click.command("log")
@click.argument("urls", nargs=-1, required=True)
@click.option("-b", "--branch", default=None, help="Branch (default: main branch).")
@click.option(
    "-n",
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Commits per page (default: commits.default_page_size).",
)
@click.option("--page", type=click.IntRange(min=1), default=1, help="Page to show.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
@click.pass_context
@async_command
async def log(
    ctx: click.Context,
    urls: tuple[str, ...],
    branch: str | None,
    limit: int | None,
    page: int,
    output_format: str,
) -> None:
    """Show commit history.

    Examples:

        repoweave log https://github.com/octo/hello.git -n 10

        repoweave log https://gitlab.com/group/proj.git --branch dev --page 2
    """
    cli_ctx = get_cli_context(ctx)
    router = build_router(cli_ctx)
    engine = read_engine()
    repo = repo_from_urls(urls)
    loader = CommitLoader(engine, router, config=cli_ctx.config.commits)
    loader.set_repo(repo)

    if limit is not None:
        try:
            loader.set_page_size(limit)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--limit") from e

    try:
        ref = await resolve_branch(branch, router, engine, repo)
    except RepoWeaveError as e:
        fail(e)

    loader.set_current_branch(ref, ref)
    result = await loader.load_page(page)
    if not result.success:
        click.echo(format_error(result.error or "Failed to load commits"), err=True)
        raise SystemExit(ExitCode.FAILURE)

    # A fresh loader holds only the requested page.
    shown = result.commits
    if output_format == "json":
        click.echo(
            format_json(
                {
                    "branch": ref,
                    "page": page,
                    "total_count": result.total_count,
                    "has_more": loader.has_more,
                    "from_vendor": result.from_vendor,
                    "commits": [c.to_dict() for c in shown],
                }
            )
        )
        return

    console.print(commits_table(shown, title=f"{repo.repo_id} @ {ref}"))
    if loader.has_more:
        click.echo(f"More commits available; use --page {page + 1}.")
