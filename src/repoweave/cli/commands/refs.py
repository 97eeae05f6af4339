"""``repoweave refs``: list branches and tags of a repository."""

from __future__ import annotations

import click

from repoweave.cli.console import console
from repoweave.cli.context import async_command
from repoweave.cli.helpers import (
    build_router,
    fail,
    get_cli_context,
    read_engine,
    repo_from_urls,
)
from repoweave.cli.output import format_json, refs_table
from repoweave.exceptions import RepoWeaveError


@click.command("refs")
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
@click.pass_context
@async_command
async def refs(ctx: click.Context, urls: tuple[str, ...], output_format: str) -> None:
    """List branches and tags.

    URLS are the repository's clone URLs, tried in order.

    Examples:

        repoweave refs https://github.com/octo/hello.git

        repoweave refs git@gitlab.com:group/sub/proj.git --format json
    """
    cli_ctx = get_cli_context(ctx)
    router = build_router(cli_ctx)
    repo = repo_from_urls(urls)

    try:
        listing = await router.list_refs(read_engine(), repo)
    except RepoWeaveError as e:
        fail(e)

    if output_format == "json":
        click.echo(
            format_json(
                {
                    "from_vendor": listing.from_vendor,
                    "refs": [r.to_dict() for r in listing.refs],
                }
            )
        )
        return

    if not listing.refs:
        click.echo("No refs found.")
        return
    console.print(refs_table(listing.refs, title=repo.repo_id))
