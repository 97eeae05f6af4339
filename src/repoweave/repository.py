"""Per-repository facade.

:class:`RepositorySession` wires the router, caches, commit loader, file
reader, ref store, branch coordinator and push coordinator of one
repository together, sharing a single :class:`~repoweave.cache.CacheManager`
so that the commit loader and branch coordinator see the same keyed state.

Usage:
    ```python
    session = RepositorySession.from_config(repo, engine)
    await session.load_refs()
    await session.set_selected_branch("release")
    page = await session.load_commits()
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from repoweave.branches import (
    BranchObserver,
    BranchSwitchCoordinator,
    BranchSwitchEvent,
    RefProvider,
    RefStore,
)
from repoweave.cache import CacheManager
from repoweave.config import PushMode, RepoWeaveConfig
from repoweave.credentials import CredentialStore, StaticCredentialStore
from repoweave.engine import GitEngine, RepoAnnouncement
from repoweave.files import FileReader
from repoweave.history import CommitLoader, CommitLoadResult
from repoweave.logging import get_logger
from repoweave.push import PushCoordinator, PushFanoutResult
from repoweave.vendors import DirectoryListing, FileContent, VendorReadRouter, VendorRef

__all__ = ["RepositorySession"]

logger = get_logger(__name__)


class RepositorySession:
    """Everything needed to browse and push one repository.

    Args:
        repo: Repository announcement (id and clone URLs).
        engine: Git engine RPC handle.
        credentials: Token source for vendor reads and pushes.
        config: Settings. Defaults are used when omitted.
        router: Pre-built router. Built from ``config.vendor`` when omitted.
        cache: Shared cache manager. A private one is created when omitted.
        ref_provider: Optional source of reconciled refs.
        repo_key: Cache key of the repository. Defaults to ``repo.repo_id``.
    """

    def __init__(
        self,
        repo: RepoAnnouncement,
        engine: GitEngine,
        credentials: CredentialStore,
        *,
        config: RepoWeaveConfig | None = None,
        router: VendorReadRouter | None = None,
        cache: CacheManager | None = None,
        ref_provider: RefProvider | None = None,
        repo_key: str | None = None,
    ) -> None:
        self._config = config or RepoWeaveConfig()
        self._repo = repo
        self._engine = engine
        self._repo_key = repo_key or repo.repo_id
        self._ref_provider = ref_provider
        self._cache = cache or CacheManager()
        self._router = router or VendorReadRouter.from_config(
            self._config.vendor, credentials
        )

        self._commits = CommitLoader(
            engine, self._router, self._cache, self._config.commits
        )
        self._commits.set_repo(repo, self._repo_key)
        self._files = FileReader(engine, self._router, self._cache, self._config.files)
        self._refs = RefStore(engine, self._router)
        self._branches = BranchSwitchCoordinator(
            engine,
            self._router,
            self._refs,
            self._commits,
            self._files,
            ref_provider=ref_provider,
            clone_depth=self._config.commits.default_depth,
        )
        self._branches.set_repo(repo)
        self._push = PushCoordinator(
            engine,
            credentials,
            default_branch=lambda: self.selected_branch,
            default_mode=self._config.push.default_mode,
        )
        self._push.set_repo(repo)

    @classmethod
    def from_config(
        cls,
        repo: RepoAnnouncement,
        engine: GitEngine,
        config: RepoWeaveConfig | None = None,
        *,
        ref_provider: RefProvider | None = None,
        repo_key: str | None = None,
    ) -> RepositorySession:
        """Build a session whose credentials come from ``config.tokens``."""
        config = config or RepoWeaveConfig()
        credentials = StaticCredentialStore.from_config(config.tokens)
        return cls(
            repo,
            engine,
            credentials,
            config=config,
            ref_provider=ref_provider,
            repo_key=repo_key,
        )

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def repo(self) -> RepoAnnouncement:
        return self._repo

    @property
    def config(self) -> RepoWeaveConfig:
        return self._config

    @property
    def router(self) -> VendorReadRouter:
        return self._router

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def commits(self) -> CommitLoader:
        return self._commits

    @property
    def files(self) -> FileReader:
        return self._files

    @property
    def refs(self) -> RefStore:
        return self._refs

    @property
    def branches(self) -> BranchSwitchCoordinator:
        return self._branches

    @property
    def pusher(self) -> PushCoordinator:
        return self._push

    @property
    def selected_branch(self) -> str:
        """Selected branch, or the main branch if none was selected."""
        return self._branches.selected_branch or self._refs.main_branch

    @property
    def has_vendor_support(self) -> bool:
        return self._router.has_vendor_support(self._repo.clone_urls)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def process_state(self, entries: Iterable[Sequence[str]]) -> None:
        """Apply a repository state document (``refs/...`` and ``HEAD`` entries)."""
        self._refs.process_state(entries)

    def subscribe(self, observer: BranchObserver) -> Callable[[], None]:
        return self._branches.subscribe(observer)

    async def load_refs(self) -> list[VendorRef]:
        return await self._refs.load_all_refs(self._repo, self._ref_provider)

    async def load_commits(self, branch: str | None = None) -> CommitLoadResult:
        """Load the current commit page of *branch* (default: selected branch)."""
        return await self._commits.load_commits(
            self._repo.repo_id,
            branch or self.selected_branch,
            self._refs.main_branch,
        )

    async def set_selected_branch(self, name: str) -> BranchSwitchEvent:
        return await self._branches.set_selected_branch(name)

    async def list_files(
        self, path: str = "", branch: str | None = None
    ) -> DirectoryListing:
        return await self._files.list_files(
            self._repo, branch or self.selected_branch, path, repo_key=self._repo_key
        )

    async def get_file_content(
        self, path: str, branch: str | None = None
    ) -> FileContent:
        return await self._files.get_file_content(
            self._repo, branch or self.selected_branch, path, repo_key=self._repo_key
        )

    async def file_exists(self, path: str, branch: str | None = None) -> bool:
        return await self._files.file_exists(
            self._repo, branch or self.selected_branch, path, repo_key=self._repo_key
        )

    async def push_to_all_remotes(
        self,
        branch: str | None = None,
        mode: PushMode | None = None,
        allow_force: bool | None = None,
        confirm_destructive: bool = False,
    ) -> PushFanoutResult:
        """Push to every remote; *allow_force* defaults to ``config.push.allow_force``."""
        if allow_force is None:
            allow_force = self._config.push.allow_force
        return await self._push.push_to_all_remotes(
            branch=branch,
            mode=mode,
            allow_force=allow_force,
            confirm_destructive=confirm_destructive,
        )

    def dispose(self) -> None:
        """Drop every cached entry of the session."""
        self._cache.dispose()
        logger.debug("session_disposed", repo_id=self._repo.repo_id)
