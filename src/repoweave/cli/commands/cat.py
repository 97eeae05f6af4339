"""``repoweave cat``: print a file of a repository."""

from __future__ import annotations

import click

from repoweave.cli.context import async_command
from repoweave.cli.helpers import (
    build_router,
    fail,
    get_cli_context,
    read_engine,
    repo_from_urls,
    resolve_branch,
)
from repoweave.exceptions import RepoWeaveError
from repoweave.files import FileReader


@click.command("cat")
@click.argument("urls", nargs=-1, required=True)
@click.option("-f", "--file", "path", required=True, help="File path in the repository.")
@click.option("-b", "--branch", default=None, help="Branch (default: main branch).")
@click.pass_context
@async_command
async def cat(
    ctx: click.Context, urls: tuple[str, ...], path: str, branch: str | None
) -> None:
    """Print the content of a file.

    Examples:

        repoweave cat https://github.com/octo/hello.git --file README.md
    """
    cli_ctx = get_cli_context(ctx)
    router = build_router(cli_ctx)
    engine = read_engine()
    repo = repo_from_urls(urls)
    reader = FileReader(engine, router, config=cli_ctx.config.files)

    try:
        ref = await resolve_branch(branch, router, engine, repo)
        content = await reader.get_file_content(repo, ref, path)
    except RepoWeaveError as e:
        fail(e)

    click.echo(content.content, nl=not content.content.endswith("\n"))
