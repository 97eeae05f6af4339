"""Vendor-first read routing with git engine fallback.

For each read the router:

1. filters the candidate clone URLs down to valid remotes,
2. keeps the ones whose host belongs to a supported vendor,
3. tries each vendor URL in order until one succeeds (credential retries
   happen inside each attempt, see :class:`~repoweave.vendors.base.VendorApi`),
4. falls back to the git engine when every vendor URL failed.

The fallback never re-raises the vendor's error; if the engine fails too,
the engine's failure is what propagates.
A vendor response of an unexpected shape counts as a failed attempt.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, TypeVar

from repoweave.constants import DEFAULT_PAGE_SIZE
from repoweave.credentials import CredentialStore
from repoweave.engine import GitEngine, RepoAnnouncement
from repoweave.exceptions import (
    ErrorContext,
    GitAccessError,
    RepoWeaveError,
    unknown_error,
)
from repoweave.logging import get_logger
from repoweave.remotes import Vendor, detect_vendor, filter_valid_remotes
from repoweave.vendors.base import VendorApi, ref_label
from repoweave.vendors.bitbucket import BitbucketApi
from repoweave.vendors.github import GiteaApi, GitHubApi
from repoweave.vendors.gitlab import GitLabApi
from repoweave.vendors.http import VendorHttpClient
from repoweave.vendors.models import (
    CommitCount,
    CommitPage,
    DirectoryListing,
    FileContent,
    FileKind,
    RefListing,
    VendorAttempt,
    VendorFileInfo,
    VendorRef,
    from_engine_commit,
)

if TYPE_CHECKING:
    from repoweave.config import VendorConfig

__all__ = ["VendorReadRouter", "AllVendorsFailed"]

logger = get_logger(__name__)

T = TypeVar("T")

_DIRECTORY_TYPES = frozenset({"dir", "tree", "directory"})

#: Raised by an adapter reading a vendor payload of an unexpected shape.
_MALFORMED_PAYLOAD: tuple[type[Exception], ...] = (
    KeyError,
    TypeError,
    AttributeError,
    ValueError,
)


class AllVendorsFailed(Exception):
    """Internal signal: every vendor URL failed for one operation."""

    def __init__(self, attempts: list[VendorAttempt]) -> None:
        self.attempts = attempts
        super().__init__(f"{len(attempts)} vendor URL(s) failed")


class VendorReadRouter:
    """Routes reads to vendor REST APIs first and the git engine second.

    Args:
        credentials: Token source for vendor requests.
        http: Shared HTTP transport. Created with defaults when omitted.
        prefer_vendor_reads: When False every read goes straight to the engine.
        apis: Optional adapter overrides keyed by vendor.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        http: VendorHttpClient | None = None,
        prefer_vendor_reads: bool = True,
        apis: Mapping[Vendor, VendorApi] | None = None,
    ) -> None:
        self.prefer_vendor_reads = prefer_vendor_reads
        http = http or VendorHttpClient()
        self._apis: dict[Vendor, VendorApi] = {
            Vendor.GITHUB: GitHubApi(http, credentials),
            Vendor.GITEA: GiteaApi(http, credentials),
            Vendor.GITLAB: GitLabApi(http, credentials),
            Vendor.BITBUCKET: BitbucketApi(http, credentials),
        }
        if apis:
            self._apis.update(apis)

    @classmethod
    def from_config(
        cls, config: VendorConfig, credentials: CredentialStore
    ) -> VendorReadRouter:
        http = VendorHttpClient(
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            rate_limit=config.rate_limit,
            rate_period=config.rate_period,
        )
        return cls(
            credentials, http=http, prefer_vendor_reads=config.prefer_vendor_reads
        )

    # -------------------------------------------------------------------------
    # Vendor discovery
    # -------------------------------------------------------------------------

    def api_for(self, vendor: Vendor) -> VendorApi:
        return self._apis[vendor]

    def vendor_urls(self, clone_urls: list[str] | tuple[str, ...]) -> list[str]:
        """Valid remotes that belong to a supported vendor, in order."""
        urls = []
        for url in filter_valid_remotes(clone_urls):
            vendor = detect_vendor(url)
            if vendor is not None and vendor in self._apis:
                logger.debug("vendor_detected", vendor=vendor.value, url=url)
                urls.append(url)
        return urls

    def has_vendor_support(self, clone_urls: list[str] | tuple[str, ...]) -> bool:
        """True if vendor-first reads are enabled and any URL has a vendor.

        Never raises.
        """
        if not self.prefer_vendor_reads:
            return False
        return bool(self.vendor_urls(clone_urls))

    async def _with_url_fallback(
        self,
        op: str,
        urls: list[str],
        call: Callable[[VendorApi, str], Awaitable[T]],
    ) -> T:
        attempts: list[VendorAttempt] = []
        for url in urls:
            vendor = detect_vendor(url)
            if vendor is None:
                continue
            try:
                result = await call(self.api_for(vendor), url)
            except (RepoWeaveError, *_MALFORMED_PAYLOAD) as e:
                error = e.message if isinstance(e, RepoWeaveError) else repr(e)
                attempts.append(VendorAttempt(url=url, success=False, error=error))
                logger.warning(
                    "vendor_attempt_failed",
                    op=op,
                    url=url,
                    vendor=vendor.value,
                    error=error,
                )
                continue
            attempts.append(VendorAttempt(url=url, success=True))
            logger.debug("vendor_read_succeeded", op=op, url=url)
            return result
        raise AllVendorsFailed(attempts)

    async def _vendor_first(
        self,
        op: str,
        repo: RepoAnnouncement,
        call: Callable[[VendorApi, str], Awaitable[T]],
    ) -> T | None:
        """Run *call* against the vendor URLs; None means "use the engine"."""
        if not self.prefer_vendor_reads:
            return None
        urls = self.vendor_urls(repo.clone_urls)
        if not urls:
            return None
        try:
            return await self._with_url_fallback(op, urls, call)
        except AllVendorsFailed as e:
            logger.warning(
                "vendor_reads_exhausted",
                op=op,
                attempts=len(e.attempts),
                errors=[a.error for a in e.attempts],
            )
            return None

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def list_directory(
        self,
        engine: GitEngine,
        repo: RepoAnnouncement,
        branch: str,
        path: str = "",
    ) -> DirectoryListing:
        """List *path* at *branch*."""
        listing = await self._vendor_first(
            "listDirectory",
            repo,
            lambda api, url: api.list_directory(url, branch, path),
        )
        if listing is not None:
            return listing

        ctx = ErrorContext(op="listDirectory", branch=branch, path=path)
        logger.debug("engine_fallback", op="listDirectory", repo_id=repo.repo_id)
        entries = await _engine_call(ctx, engine.list_repo_files(repo, branch, path))
        files = tuple(
            VendorFileInfo(
                path=entry.path,
                type=(
                    FileKind.DIRECTORY
                    if entry.type in _DIRECTORY_TYPES
                    else FileKind.FILE
                ),
                size=entry.size,
                mode=entry.mode,
                oid=entry.oid,
            )
            for entry in entries
        )
        return DirectoryListing(
            files=files, path=path, ref=ref_label(branch), from_vendor=False
        )

    async def get_file_content(
        self,
        engine: GitEngine,
        repo: RepoAnnouncement,
        branch: str,
        path: str,
    ) -> FileContent:
        """Read the text of *path* at *branch*."""
        content = await self._vendor_first(
            "getFileContent",
            repo,
            lambda api, url: api.get_file_content(url, branch, path),
        )
        if content is not None:
            return content

        ctx = ErrorContext(op="getFileContent", branch=branch, path=path)
        text = await _engine_call(ctx, engine.get_repo_file_content(repo, branch, path))
        return FileContent(
            content=text if isinstance(text, str) else str(text or ""),
            path=path,
            ref=ref_label(branch),
            from_vendor=False,
        )

    async def list_refs(self, engine: GitEngine, repo: RepoAnnouncement) -> RefListing:
        """List branches and tags."""
        refs = await self._vendor_first(
            "listRefs", repo, lambda api, url: api.list_refs(url)
        )
        if refs is not None:
            return RefListing(refs=tuple(refs), from_vendor=True)

        ctx = ErrorContext(op="listRefs")
        branches = await _engine_call(ctx, engine.list_branches(repo))
        return RefListing(
            refs=tuple(VendorRef.head(b.name, b.commit_id) for b in branches),
            from_vendor=False,
        )

    async def list_vendor_commits(
        self,
        repo: RepoAnnouncement,
        branch: str,
        *,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> CommitPage | None:
        """One vendor commit page, or None when no vendor could serve it."""
        return await self._vendor_first(
            "listCommits",
            repo,
            lambda api, url: api.list_commits(url, branch, page, per_page),
        )

    async def list_commits(
        self,
        engine: GitEngine,
        repo: RepoAnnouncement,
        branch: str,
        *,
        depth: int = DEFAULT_PAGE_SIZE,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> CommitPage:
        """List commits of *branch*.

        Vendors are asked for ``page``/``per_page``; the engine fallback
        returns up to ``depth`` commits from the tip.
        """
        branch = branch or "main"
        commit_page = await self.list_vendor_commits(
            repo, branch, page=page, per_page=per_page
        )
        if commit_page is not None:
            return commit_page

        ctx = ErrorContext(op="listCommits", branch=branch)
        result = await _engine_call(
            ctx, engine.get_commit_history(repo.repo_id, branch, depth)
        )
        if not result.success:
            raise unknown_error(
                f"Engine commit history failed: {result.error or 'unknown error'}",
                context=ctx,
            )
        return CommitPage(
            commits=tuple(from_engine_commit(c) for c in result.commits),
            ref=ref_label(branch),
            from_vendor=False,
        )

    async def get_commit_count(
        self, engine: GitEngine, repo: RepoAnnouncement, branch: str
    ) -> CommitCount:
        """Count commits of *branch*. Never raises.

        With a vendor available the answer is always an estimate flag;
        exact counts only come from the engine.
        """
        branch = branch or "main"
        if self.has_vendor_support(repo.clone_urls):
            return CommitCount(success=True, is_estimate=True, from_vendor=True)

        try:
            result = await engine.get_commit_count(repo.repo_id, branch)
        except Exception as e:
            logger.warning("commit_count_failed", branch=branch, error=str(e))
            return CommitCount(success=False, error=str(e))
        if result.success:
            return CommitCount(success=True, count=result.count)
        return CommitCount(
            success=False,
            error=result.error or "Failed to get commit count from git",
        )


async def _engine_call(ctx: ErrorContext, call: Awaitable[T]) -> T:
    """Await an engine RPC, attaching *ctx* to foreign failures."""
    try:
        return await call
    except GitAccessError:
        raise
    except RepoWeaveError as e:
        raise unknown_error(e.message, context=ctx) from e
