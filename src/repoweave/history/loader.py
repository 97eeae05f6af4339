"""Paginated, cached commit history.

:class:`CommitLoader` keeps the commit page state of one repository and
loads pages vendor-first through :class:`~repoweave.vendors.VendorReadRouter`,
falling back to the git engine (deepening the local clone when needed).

Every page load re-fetches history from the branch tip down to
``page_size * page`` commits and slices the requested page out of it.
Loaded pages are written to the ``commit_history`` cache namespace under
``{repo_key}:{branch}:p{page}:s{page_size}``.

Loads carry a generation. :meth:`CommitLoader.reset` and branch changes
bump it, and a load that resolves under an older generation is discarded
with ``stale=True`` instead of being merged into the new branch's state.
"""

from __future__ import annotations

import itertools
from dataclasses import asdict, dataclass, field

from repoweave.cache import CacheManager
from repoweave.config import CacheConfig, CommitConfig
from repoweave.constants import COMMIT_CACHE_NAME, VENDOR_MAX_PER_PAGE
from repoweave.engine import EngineCommit, GitEngine, RepoAnnouncement, RepoDataLevel
from repoweave.exceptions import ErrorContext, network_error, unknown_error
from repoweave.logging import get_logger
from repoweave.remotes import short_ref_name
from repoweave.vendors import VendorReadRouter, to_engine_commit

__all__ = [
    "CachedCommitPage",
    "CommitLoadResult",
    "CommitLoader",
    "CommitPageState",
    "CommitPagination",
]

logger = get_logger(__name__)

#: Key prefix of the commit page namespace.
COMMIT_CACHE_KEY_PREFIX = "commit_history_cache_"


# =============================================================================
# State and results
# =============================================================================


@dataclass(slots=True)
class CommitPageState:
    """Mutable page state of one repository's commit history.

    ``has_more`` is derived from ``total_commits`` when it is known and
    from the length of the last page otherwise.
    """

    commits: list[EngineCommit] = field(default_factory=list)
    total_commits: int | None = None
    current_page: int = 1
    page_size: int = 30
    has_more: bool = False
    current_branch: str | None = None
    main_branch: str | None = None


@dataclass(frozen=True, slots=True)
class CommitPagination:
    """Read-only snapshot of the pagination state."""

    current_page: int
    page_size: int
    has_more: bool
    total_commits: int | None
    loaded: int
    loading: bool

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CachedCommitPage:
    """Payload stored in the commit page cache.

    ``repo_key`` and ``branch`` are re-checked on read so that key
    collisions between repositories never leak commits across them.
    """

    commits: tuple[EngineCommit, ...]
    total: int | None
    page: int
    page_size: int
    branch: str
    repo_key: str


@dataclass(frozen=True, slots=True)
class CommitLoadResult:
    """Outcome of one commit page load.

    Attributes:
        success: True if the page was loaded.
        commits: Accumulated commits after the load.
        total_count: Exact or estimated total, when known.
        error: Error message when ``success`` is False.
        from_cache: True if the page came from the page cache.
        from_vendor: True if history came from a vendor API.
        stale: True if the load was discarded because the branch changed
            while it was in flight.
    """

    success: bool
    commits: tuple[EngineCommit, ...] = ()
    total_count: int | None = None
    error: str | None = None
    from_cache: bool = False
    from_vendor: bool | None = None
    stale: bool = False

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["commits"] = len(self.commits)
        return data


# =============================================================================
# Loader
# =============================================================================


class CommitLoader:
    """Loads and paginates commit history for one repository.

    Args:
        engine: Git engine RPC handle.
        router: Vendor-first read router. When None every read uses the engine.
        cache: Shared cache manager. When None pages are not cached.
        config: Paging and caching settings.
    """

    def __init__(
        self,
        engine: GitEngine,
        router: VendorReadRouter | None = None,
        cache: CacheManager | None = None,
        config: CommitConfig | None = None,
    ) -> None:
        self._engine = engine
        self._router = router
        self._cache = cache
        self._config = config or CommitConfig()
        self._state = CommitPageState(page_size=self._config.default_page_size)
        self._repo: RepoAnnouncement | None = None
        self._repo_key: str | None = None
        self._generation = 0
        self._loading: int | None = None
        self._tokens = itertools.count(1)

        if self._cache is not None and self._config.enable_caching:
            self._cache.register_cache(
                COMMIT_CACHE_NAME,
                CacheConfig(
                    ttl_seconds=self._config.cache_ttl_seconds,
                    key_prefix=COMMIT_CACHE_KEY_PREFIX,
                ),
            )

    # -------------------------------------------------------------------------
    # Repository and branch binding
    # -------------------------------------------------------------------------

    def set_repo(self, repo: RepoAnnouncement, repo_key: str | None = None) -> None:
        """Bind the repository; *repo_key* defaults to ``repo.repo_id``."""
        if self._repo is not None and self._repo.repo_id != repo.repo_id:
            self.reset(clear_branch=True)
        self._repo = repo
        self._repo_key = repo_key or repo.repo_id

    def set_current_branch(
        self, branch: str | None, main_branch: str | None = None
    ) -> None:
        if branch != self._state.current_branch:
            self._generation += 1
        self._state.current_branch = branch
        if main_branch:
            self._state.main_branch = main_branch

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CommitPageState:
        return self._state

    @property
    def commits(self) -> list[EngineCommit]:
        return list(self._state.commits)

    @property
    def total_commits(self) -> int | None:
        return self._state.total_commits

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    @property
    def current_branch(self) -> str | None:
        return self._state.current_branch

    @property
    def main_branch(self) -> str | None:
        return self._state.main_branch

    @property
    def is_loading(self) -> bool:
        return self._loading is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pagination(self) -> CommitPagination:
        return CommitPagination(
            current_page=self._state.current_page,
            page_size=self._state.page_size,
            has_more=self._state.has_more,
            total_commits=self._state.total_commits,
            loaded=len(self._state.commits),
            loading=self.is_loading,
        )

    def stats(self) -> dict[str, object]:
        """Pagination state plus commit cache statistics."""
        stats: dict[str, object] = {
            "pagination": self.pagination.to_dict(),
            "current_branch": self._state.current_branch,
            "main_branch": self._state.main_branch,
            "generation": self._generation,
        }
        if self._cache is not None:
            stats["cache"] = self._cache.stats(COMMIT_CACHE_NAME).to_dict()
        return stats

    # -------------------------------------------------------------------------
    # Paging operations
    # -------------------------------------------------------------------------

    async def load_commits(
        self,
        repo_id: str | None = None,
        branch: str | None = None,
        main_branch: str | None = None,
    ) -> CommitLoadResult:
        """Load the current page of commit history.

        Args:
            repo_id: Repository id. Defaults to the bound repository's id.
            branch: Branch to load. Defaults to the stored current branch,
                then to the main branch.
            main_branch: Main branch of the repository.

        Returns:
            The load outcome. Failures are reported, not raised.
        """
        effective_repo_id = repo_id or (self._repo.repo_id if self._repo else None)
        effective_main = main_branch or self._state.main_branch
        effective_branch = branch or self._state.current_branch or effective_main

        if not effective_repo_id or not effective_repo_id.strip() or not effective_branch:
            return CommitLoadResult(
                success=False, error="Repository ID and main branch are required"
            )

        if main_branch:
            self._state.main_branch = main_branch
        if branch and branch != self._state.current_branch:
            if self._state.current_branch is not None:
                self.reset()
            self.set_current_branch(branch)

        branch_name = short_ref_name(effective_branch)
        repo_key = self._repo_key or effective_repo_id
        page = self._state.current_page
        page_size = self._state.page_size

        cached = self._read_cache(repo_key, branch_name, page, page_size)
        if cached is not None:
            return self._adopt_cached(cached)

        generation = self._generation
        token = next(self._tokens)
        self._loading = token
        required_depth = page_size * page
        log = logger.bind(repo_id=effective_repo_id, branch=branch_name, page=page)

        try:
            all_commits, from_vendor = await self._fetch_history(
                effective_repo_id, branch_name, required_depth
            )
            if generation != self._generation:
                log.info("commit_load_discarded", reason="branch_changed")
                return CommitLoadResult(success=False, stale=True)

            start = (page - 1) * page_size
            end = page * page_size
            page_commits = all_commits[start:end]
            if page == 1:
                self._state.commits = list(page_commits)
            else:
                self._state.commits.extend(page_commits)
            self._state.has_more = end < len(all_commits)

            if page == 1 and self._state.total_commits is None:
                await self._resolve_total(
                    effective_repo_id, branch_name, len(all_commits), required_depth
                )
                if generation != self._generation:
                    log.info("commit_load_discarded", reason="branch_changed")
                    return CommitLoadResult(success=False, stale=True)

            self._write_cache(repo_key, branch_name, page, page_size, page_commits)
            log.debug(
                "commits_loaded",
                loaded=len(page_commits),
                total=self._state.total_commits,
                from_vendor=from_vendor,
            )
            return CommitLoadResult(
                success=True,
                commits=tuple(self._state.commits),
                total_count=self._state.total_commits,
                from_vendor=from_vendor,
            )
        except Exception as e:
            if generation != self._generation:
                return CommitLoadResult(success=False, stale=True)
            log.warning("commit_load_failed", error=str(e))
            self._state.commits = []
            self._state.has_more = False
            return CommitLoadResult(success=False, error=str(e))
        finally:
            if self._loading == token:
                self._loading = None

    async def load_page(self, page: int) -> CommitLoadResult:
        """Load page *page* (1-based) of the current branch."""
        if page < 1:
            return CommitLoadResult(success=False, error=f"Invalid page number: {page}")
        self._state.current_page = page
        return await self.load_commits()

    async def load_more_commits(self) -> CommitLoadResult:
        """Load the next page and append it to the accumulated commits."""
        if self.is_loading or not self._state.has_more:
            return CommitLoadResult(
                success=False, error="No more commits to load or already loading"
            )
        self._state.current_page += 1
        return await self.load_commits()

    async def refresh_commits(self) -> CommitLoadResult:
        """Drop every cached page and reload page 1."""
        if self._cache is not None and self._cache.is_registered(COMMIT_CACHE_NAME):
            self._cache.clear(COMMIT_CACHE_NAME)
        self._state.current_page = 1
        return await self.load_commits()

    def reset(self, clear_branch: bool = False) -> None:
        """Forget the accumulated page state.

        The page cache is kept; it is keyed by branch. In-flight loads are
        invalidated.
        """
        self._state.commits = []
        self._state.total_commits = None
        self._state.current_page = 1
        self._state.has_more = False
        if clear_branch:
            self._state.current_branch = None
        self._generation += 1
        self._loading = None

    def set_page_size(self, size: int) -> None:
        """Change the page size and restart paging from page 1.

        Raises:
            ValueError: If *size* is not in ``1..max_page_size``.
        """
        if size <= 0 or size > self._config.max_page_size:
            raise ValueError(
                f"Page size must be between 1 and {self._config.max_page_size}, got {size}"
            )
        self._state.page_size = size
        self.reset()

    async def get_commit_history(
        self, branch: str | None = None, depth: int | None = None
    ) -> list[EngineCommit]:
        """Return up to *depth* commits of *branch* without touching page state."""
        if self._repo is None:
            raise unknown_error(
                "No repository bound to the commit loader",
                context=ErrorContext(op="getCommitHistory"),
            )
        branch_name = short_ref_name(
            branch or self._state.current_branch or self._state.main_branch or "main"
        )
        depth = depth or self._config.default_depth
        commits, _ = await self._fetch_history(self._repo.repo_id, branch_name, depth)
        return commits

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _page_cache(self) -> CacheManager | None:
        return self._cache if self._config.enable_caching else None

    @staticmethod
    def _cache_key(repo_key: str, branch: str, page: int, page_size: int) -> str:
        return f"{repo_key}:{branch}:p{page}:s{page_size}"

    def _read_cache(
        self, repo_key: str, branch: str, page: int, page_size: int
    ) -> CachedCommitPage | None:
        cache = self._page_cache()
        if cache is None:
            return None
        payload = cache.get(
            COMMIT_CACHE_NAME, self._cache_key(repo_key, branch, page, page_size)
        )
        if not isinstance(payload, CachedCommitPage):
            return None
        if payload.repo_key != repo_key or payload.branch != branch:
            logger.warning(
                "commit_cache_mismatch",
                repo_key=repo_key,
                branch=branch,
                cached_repo_key=payload.repo_key,
                cached_branch=payload.branch,
            )
            return None
        return payload

    def _adopt_cached(self, cached: CachedCommitPage) -> CommitLoadResult:
        state = self._state
        if cached.page == 1:
            state.commits = list(cached.commits)
        else:
            state.commits.extend(cached.commits)
        if cached.total is not None:
            state.total_commits = cached.total
        total = state.total_commits
        if total:
            state.has_more = cached.page * cached.page_size < total
        else:
            state.has_more = len(cached.commits) == cached.page_size
        logger.debug(
            "commit_page_cache_hit",
            repo_key=cached.repo_key,
            branch=cached.branch,
            page=cached.page,
        )
        return CommitLoadResult(
            success=True,
            commits=tuple(state.commits),
            total_count=state.total_commits,
            from_cache=True,
        )

    def _write_cache(
        self,
        repo_key: str,
        branch: str,
        page: int,
        page_size: int,
        commits: list[EngineCommit],
    ) -> None:
        cache = self._page_cache()
        if cache is None:
            return
        cache.set(
            COMMIT_CACHE_NAME,
            self._cache_key(repo_key, branch, page, page_size),
            CachedCommitPage(
                commits=tuple(commits),
                total=self._state.total_commits,
                page=page,
                page_size=page_size,
                branch=branch,
                repo_key=repo_key,
            ),
        )

    async def _fetch_history(
        self, repo_id: str, branch: str, depth: int
    ) -> tuple[list[EngineCommit], bool]:
        """Return ``(commits, from_vendor)`` for the newest *depth* commits."""
        if self._router is not None and self._repo is not None:
            try:
                commits = await self._fetch_from_vendor(
                    self._router, self._repo, branch, depth
                )
            except Exception as e:
                logger.warning(
                    "commit_router_failed", repo_id=repo_id, branch=branch, error=str(e)
                )
            else:
                if commits is not None:
                    return commits, True
        return await self._fetch_from_engine(repo_id, branch, depth), False

    async def _fetch_from_vendor(
        self,
        router: VendorReadRouter,
        repo: RepoAnnouncement,
        branch: str,
        depth: int,
    ) -> list[EngineCommit] | None:
        """Collect *depth* commits from vendor pages; None if any page is unavailable."""
        if not router.has_vendor_support(repo.clone_urls):
            return None
        per_page = min(depth, VENDOR_MAX_PER_PAGE)
        collected: list[EngineCommit] = []
        vendor_page = 1
        while True:
            result = await router.list_vendor_commits(
                repo, branch, page=vendor_page, per_page=per_page
            )
            if result is None:
                return None
            collected.extend(to_engine_commit(c) for c in result.commits)
            if len(collected) >= depth or not result.has_more:
                return collected[:depth]
            vendor_page += 1

    async def _fetch_from_engine(
        self, repo_id: str, branch: str, depth: int
    ) -> list[EngineCommit]:
        ctx = ErrorContext(op="getCommitHistory", branch=branch)
        level = await self._engine.get_repo_data_level(repo_id)
        if level != RepoDataLevel.FULL:
            clone_depth = max(depth, self._config.default_depth)
            clone = await self._engine.ensure_full_clone(repo_id, branch, clone_depth)
            if not clone.success:
                raise network_error(
                    "Failed to ensure full clone for commit history "
                    f"(repo_id={repo_id}, data_level={level.value}, depth={clone_depth}): "
                    f"{clone.error or 'unknown error'}",
                    context=ctx,
                )

        history = await self._engine.get_commit_history(repo_id, branch, depth)
        if not history.success:
            raise unknown_error(
                f"Failed to load commit history: {history.error or 'unknown error'}",
                context=ctx,
            )
        if history.fallback_used and history.fallback_used != branch:
            logger.warning(
                "commit_history_branch_fallback",
                repo_id=repo_id,
                requested=branch,
                used=history.fallback_used,
            )
        return list(history.commits)

    async def _resolve_total(
        self, repo_id: str, branch: str, loaded: int, required_depth: int
    ) -> None:
        """Set ``total_commits`` once per branch session. Never raises."""
        state = self._state
        if loaded < required_depth:
            state.total_commits = loaded
            return

        if self._router is not None and self._repo is not None:
            count = await self._router.get_commit_count(self._engine, self._repo, branch)
            if count.success and not count.is_estimate and count.count is not None:
                state.total_commits = count.count
            else:
                state.total_commits = loaded
                state.has_more = True
            return

        try:
            result = await self._engine.get_commit_count(repo_id, branch)
        except Exception as e:
            logger.warning("commit_count_failed", repo_id=repo_id, branch=branch, error=str(e))
            state.total_commits = loaded
            state.has_more = True
            return
        if result.success:
            state.total_commits = result.count
        else:
            state.total_commits = loaded
            state.has_more = True
