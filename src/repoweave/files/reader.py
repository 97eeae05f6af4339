"""Cached directory listings and file reads.

Reads go vendor-first through the router. Listings and contents are cached
in the ``file_listing`` and ``file_content`` namespaces keyed by
``{kind}_{repo_key}_{ref}_{path}`` where ``ref`` is the full short branch
name (or commit id); files larger than ``max_cache_file_size`` characters
are never cached.

Identical listings that overlap share one request. A listing that fails is
not requested again for ``failure_backoff_seconds``; during that window a
cached listing is served if one exists, otherwise the call fails fast.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Callable
from dataclasses import dataclass

from repoweave.cache import CacheManager
from repoweave.config import CacheConfig, FileCacheConfig
from repoweave.constants import FILE_CONTENT_CACHE_NAME, FILE_LISTING_CACHE_NAME
from repoweave.engine import GitEngine, RepoAnnouncement
from repoweave.exceptions import (
    ErrorContext,
    ErrorKind,
    GitAccessError,
    RepoWeaveError,
    error_kind_of,
    make_error,
)
from repoweave.logging import get_logger
from repoweave.remotes import normalize_repo_path, short_ref_name
from repoweave.vendors import DirectoryListing, FileContent, VendorReadRouter

__all__ = ["FileReader", "FileReaderStats"]

logger = get_logger(__name__)

#: Branches tried when a listing of the default-looking branch is not found.
_ALTERNATE_BRANCHES: dict[str, tuple[str, ...]] = {
    "main": ("master", "develop"),
}
_DEFAULT_ALTERNATES: tuple[str, ...] = ("main", "master")


@dataclass(frozen=True, slots=True)
class FileReaderStats:
    """Snapshot of a reader's settings and request guards."""

    caching_enabled: bool
    has_cache: bool
    in_flight: int
    backing_off: int
    coalesced: int

    def to_dict(self) -> dict[str, object]:
        return dataclasses.asdict(self)


class FileReader:
    """Directory listings and file contents for one repository.

    Args:
        engine: Git engine RPC handle used when no vendor answers.
        router: Vendor-first read router.
        cache: Shared cache manager. When None nothing is cached.
        config: File cache settings.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        engine: GitEngine,
        router: VendorReadRouter,
        cache: CacheManager | None = None,
        config: FileCacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._router = router
        self._cache = cache
        self._config = config or FileCacheConfig()
        self._clock = clock
        self._in_flight: dict[str, asyncio.Task[DirectoryListing]] = {}
        self._backoff: dict[str, tuple[float, ErrorKind]] = {}
        self._coalesced = 0

        if self._cache is not None and self._config.enable_caching:
            self._cache.register_cache(
                FILE_LISTING_CACHE_NAME,
                CacheConfig(ttl_seconds=self._config.listing_ttl_seconds),
            )
            self._cache.register_cache(
                FILE_CONTENT_CACHE_NAME,
                CacheConfig(ttl_seconds=self._config.content_ttl_seconds),
            )

    @property
    def config(self) -> FileCacheConfig:
        return self._config

    def _page_cache(self) -> CacheManager | None:
        return self._cache if self._config.enable_caching else None

    @staticmethod
    def cache_key(kind: str, repo_key: str, ref: str, path: str) -> str:
        return f"{kind}_{repo_key}_{ref}_{path}"

    def stats(self) -> FileReaderStats:
        now = self._clock()
        return FileReaderStats(
            caching_enabled=self._config.enable_caching,
            has_cache=self._cache is not None,
            in_flight=len(self._in_flight),
            backing_off=sum(1 for until, _ in self._backoff.values() if until > now),
            coalesced=self._coalesced,
        )

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    async def list_files(
        self,
        repo: RepoAnnouncement,
        branch: str,
        path: str = "",
        *,
        repo_key: str | None = None,
        use_cache: bool = True,
    ) -> DirectoryListing:
        """List *path* at *branch*.

        When the branch is not found, the usual default branch names are
        tried before giving up.

        Raises:
            GitAccessError: If neither a vendor nor the engine could list it,
                or the same listing failed within the backoff window.
        """
        return await self._listing(
            repo,
            short_ref_name(branch),
            path,
            repo_key or repo.repo_id,
            use_cache=use_cache,
            try_alternates=True,
        )

    async def list_files_at_commit(
        self,
        repo: RepoAnnouncement,
        commit: str,
        path: str = "",
        *,
        repo_key: str | None = None,
        use_cache: bool = True,
    ) -> DirectoryListing:
        """List *path* at a fixed commit (used for tags)."""
        return await self._listing(
            repo,
            commit,
            path,
            repo_key or repo.repo_id,
            use_cache=use_cache,
            try_alternates=False,
        )

    async def _listing(
        self,
        repo: RepoAnnouncement,
        ref: str,
        path: str,
        repo_key: str,
        *,
        use_cache: bool,
        try_alternates: bool,
    ) -> DirectoryListing:
        key = self.cache_key("listing", repo_key, ref, path)
        cache = self._page_cache()

        if cache is not None and use_cache:
            cached = cache.get(FILE_LISTING_CACHE_NAME, key)
            if isinstance(cached, DirectoryListing):
                logger.debug("file_listing_cache_hit", path=path, ref=ref)
                return dataclasses.replace(cached, from_cache=True)

        until, failure = self._backoff.get(key, (0.0, ErrorKind.UNKNOWN))
        if self._clock() < until:
            cached = None
            if cache is not None:
                cached = cache.get(FILE_LISTING_CACHE_NAME, key)
            if isinstance(cached, DirectoryListing):
                return dataclasses.replace(cached, from_cache=True)
            raise make_error(
                failure,
                "Listing temporarily backed off after a recent failure",
                context=ErrorContext(op="listDirectory", branch=ref, path=path),
            )

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._fetch_listing(repo, ref, path, repo_key, key, try_alternates)
            )
            self._in_flight[key] = task
        else:
            self._coalesced += 1
            logger.debug("file_listing_coalesced", path=path, ref=ref)
        return await asyncio.shield(task)

    async def _fetch_listing(
        self,
        repo: RepoAnnouncement,
        ref: str,
        path: str,
        repo_key: str,
        key: str,
        try_alternates: bool,
    ) -> DirectoryListing:
        cache = self._page_cache()
        try:
            try:
                listing = await self._router.list_directory(
                    self._engine, repo, ref, path
                )
            except GitAccessError as e:
                if not try_alternates or e.kind != ErrorKind.NOT_FOUND:
                    raise
                alternate, listing = await self._list_alternate_branch(
                    repo, ref, path, e
                )
                if cache is not None:
                    cache.set(
                        FILE_LISTING_CACHE_NAME,
                        self.cache_key("listing", repo_key, alternate, path),
                        listing,
                    )
        except RepoWeaveError as e:
            self._backoff[key] = (
                self._clock() + self._config.failure_backoff_seconds,
                error_kind_of(e),
            )
            logger.warning("file_listing_failed", path=path, ref=ref, error=e.message)
            raise
        finally:
            self._in_flight.pop(key, None)

        self._backoff.pop(key, None)
        if cache is not None:
            cache.set(FILE_LISTING_CACHE_NAME, key, listing)
        return listing

    async def _list_alternate_branch(
        self,
        repo: RepoAnnouncement,
        ref: str,
        path: str,
        original: GitAccessError,
    ) -> tuple[str, DirectoryListing]:
        for alternate in _ALTERNATE_BRANCHES.get(ref, _DEFAULT_ALTERNATES):
            if alternate == ref:
                continue
            try:
                listing = await self._router.list_directory(
                    self._engine, repo, alternate, path
                )
            except GitAccessError as e:
                logger.debug("alternate_branch_failed", branch=alternate, error=e.message)
                continue
            logger.info("file_listing_alternate_branch", requested=ref, used=alternate)
            return alternate, listing
        raise original

    async def file_exists(
        self,
        repo: RepoAnnouncement,
        branch: str,
        path: str,
        *,
        commit: str | None = None,
        repo_key: str | None = None,
        use_cache: bool = True,
    ) -> bool:
        """True if *path* is an entry of its parent directory.

        Looks at *commit* when given, otherwise at *branch*. A parent
        directory that does not exist means the file does not either.

        Raises:
            GitAccessError: For failures other than ``NOT_FOUND``.
        """
        target = normalize_repo_path(path).rstrip("/")
        if not target:
            return True
        parent, _, name = target.rpartition("/")
        try:
            if commit:
                listing = await self.list_files_at_commit(
                    repo, commit, parent, repo_key=repo_key, use_cache=use_cache
                )
            else:
                listing = await self.list_files(
                    repo, branch, parent, repo_key=repo_key, use_cache=use_cache
                )
        except GitAccessError as e:
            if e.kind == ErrorKind.NOT_FOUND:
                return False
            raise
        return any(f.path.rsplit("/", 1)[-1] == name for f in listing.files)

    # -------------------------------------------------------------------------
    # Contents
    # -------------------------------------------------------------------------

    async def get_file_content(
        self,
        repo: RepoAnnouncement,
        branch: str,
        path: str,
        *,
        repo_key: str | None = None,
        use_cache: bool = True,
    ) -> FileContent:
        """Read *path* at *branch*.

        Raises:
            GitAccessError: If neither a vendor nor the engine could read it.
        """
        ref = short_ref_name(branch)
        key = self.cache_key("content", repo_key or repo.repo_id, ref, path)
        cache = self._page_cache()

        if cache is not None and use_cache:
            cached = cache.get(FILE_CONTENT_CACHE_NAME, key)
            if isinstance(cached, FileContent):
                logger.debug("file_content_cache_hit", path=path, ref=ref)
                return dataclasses.replace(cached, from_cache=True)

        content = await self._router.get_file_content(self._engine, repo, ref, path)

        if cache is not None:
            if content.size <= self._config.max_cache_file_size:
                cache.set(FILE_CONTENT_CACHE_NAME, key, content)
            else:
                logger.debug("file_content_not_cached", path=path, size=content.size)
        return content

    def clear_cache(self) -> None:
        """Drop every cached listing and file content, and any listing backoff."""
        self._backoff.clear()
        if self._cache is None:
            return
        for name in (FILE_LISTING_CACHE_NAME, FILE_CONTENT_CACHE_NAME):
            if self._cache.is_registered(name):
                self._cache.clear(name)
        logger.debug("file_cache_cleared")
