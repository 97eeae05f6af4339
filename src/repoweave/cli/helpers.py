"""Helpers shared by the read-only CLI commands."""

from __future__ import annotations

from collections.abc import Sequence
from typing import NoReturn

import click

from repoweave.branches import RefStore
from repoweave.cli.context import CLIContext, ExitCode
from repoweave.cli.output import error_suggestion, format_error
from repoweave.config import RepoWeaveConfig
from repoweave.credentials import StaticCredentialStore
from repoweave.engine import GitEngine, RepoAnnouncement, UnavailableEngine
from repoweave.exceptions import RepoWeaveError
from repoweave.logging import bind_repo_context, get_logger
from repoweave.remotes import parse_remote_url
from repoweave.vendors import VendorReadRouter

__all__ = [
    "build_router",
    "fail",
    "get_cli_context",
    "read_engine",
    "repo_from_urls",
    "resolve_branch",
]

logger = get_logger(__name__)


def get_cli_context(ctx: click.Context) -> CLIContext:
    """Return the :class:`CLIContext` created by the root group."""
    obj = ctx.find_root().obj or {}
    cli_ctx = obj.get("cli_ctx")
    if cli_ctx is None:
        cli_ctx = CLIContext(config=RepoWeaveConfig())
    return cli_ctx


def repo_from_urls(urls: Sequence[str]) -> RepoAnnouncement:
    """Build an announcement whose id is the first parseable ``owner/repo`` path."""
    repo_id = urls[0]
    for url in urls:
        try:
            repo_id = parse_remote_url(url).project_path
        except RepoWeaveError:
            continue
        break
    bind_repo_context(repo_id=repo_id)
    return RepoAnnouncement(repo_id=repo_id, clone_urls=tuple(urls), name=repo_id)


def build_router(cli_ctx: CLIContext) -> VendorReadRouter:
    credentials = StaticCredentialStore.from_config(cli_ctx.config.tokens)
    return VendorReadRouter.from_config(cli_ctx.config.vendor, credentials)


def read_engine() -> GitEngine:
    """The CLI runs without a local git engine; vendor reads only."""
    return UnavailableEngine()


async def resolve_branch(
    branch: str | None,
    router: VendorReadRouter,
    engine: GitEngine,
    repo: RepoAnnouncement,
) -> str:
    """Return *branch*, or the repository's main branch when None."""
    if branch:
        return branch
    refs = RefStore(engine, router)
    await refs.load_all_refs(repo)
    logger.debug("main_branch_resolved", branch=refs.main_branch)
    return refs.main_branch


def fail(error: RepoWeaveError) -> NoReturn:
    """Print *error* and exit with :attr:`ExitCode.FAILURE`."""
    click.echo(format_error(error.message, suggestion=error_suggestion(error)), err=True)
    raise SystemExit(ExitCode.FAILURE) from error
