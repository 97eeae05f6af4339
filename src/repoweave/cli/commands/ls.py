"""``repoweave ls``: list a directory of a repository."""

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
    resolve_branch,
)
from repoweave.cli.output import files_table, format_json
from repoweave.exceptions import RepoWeaveError
from repoweave.files import FileReader


@click.command("ls")
@click.argument("urls", nargs=-1, required=True)
@click.option("-b", "--branch", default=None, help="Branch (default: main branch).")
@click.option("-p", "--path", "path", default="", help="Directory to list.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
@click.pass_context
@async_command
async def ls(
    ctx: click.Context,
    urls: tuple[str, ...],
    branch: str | None,
    path: str,
    output_format: str,
) -> None:
    """List files of a repository directory.

    Examples:

        repoweave ls https://github.com/octo/hello.git --path src
    """
    cli_ctx = get_cli_context(ctx)
    router = build_router(cli_ctx)
    engine = read_engine()
    repo = repo_from_urls(urls)
    reader = FileReader(engine, router, config=cli_ctx.config.files)

    try:
        ref = await resolve_branch(branch, router, engine, repo)
        listing = await reader.list_files(repo, ref, path)
    except RepoWeaveError as e:
        fail(e)

    if output_format == "json":
        click.echo(
            format_json(
                {
                    "path": listing.path,
                    "ref": listing.ref,
                    "from_vendor": listing.from_vendor,
                    "files": [
                        {
                            "path": f.path,
                            "type": f.type.value,
                            "size": f.size,
                            "oid": f.oid,
                        }
                        for f in listing.files
                    ],
                }
            )
        )
        return

    console.print(files_table(listing.files, title=f"{listing.ref}:{listing.path}"))
