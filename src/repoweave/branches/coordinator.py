"""Branch switching.

:meth:`BranchSwitchCoordinator.set_selected_branch` moves the selected
branch: it syncs with the remote when no vendor API can serve the repository,
makes sure the branch is materialised locally, invalidates file caches only
when the branch actually moved, reloads the first commit page and the ref
listing, then publishes a :class:`BranchSwitchEvent` to observers.

Switches are not serialised. Each one takes a generation and only the
newest switch reloads commits, clears the switching flag and publishes;
the commit loader discards page loads of superseded switches on its own.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from repoweave.branches.refs import RefProvider, RefStore
from repoweave.constants import DEFAULT_COMMIT_DEPTH
from repoweave.engine import EngineCommit, GitEngine, RepoAnnouncement
from repoweave.exceptions import ErrorContext, FatalError, network_error
from repoweave.files import FileReader
from repoweave.history import CommitLoader
from repoweave.logging import get_logger
from repoweave.remotes import short_ref_name
from repoweave.vendors import VendorReadRouter

__all__ = ["BranchObserver", "BranchSwitchCoordinator", "BranchSwitchEvent"]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BranchSwitchEvent:
    """Published after a branch switch completes.

    Attributes:
        branch: Short name of the selected branch or tag.
        is_tag: True if the selection is a tag.
        commits: First commit page of the new branch.
        total_commits: Exact or estimated commit total, when known.
        has_more: True if more commit pages exist.
        error: User-facing failure message, None on success.
        generation: Switch generation that produced the event.
    """

    branch: str
    is_tag: bool
    commits: tuple[EngineCommit, ...]
    total_commits: int | None
    has_more: bool
    error: str | None
    generation: int

    @property
    def success(self) -> bool:
        return self.error is None


BranchObserver = Callable[[BranchSwitchEvent], None]


class BranchSwitchCoordinator:
    """Drives branch switches for one repository.

    Args:
        engine: Git engine RPC handle.
        router: Vendor-first read router.
        refs: Ref state of the repository.
        loader: Commit loader of the repository.
        files: File reader whose caches are invalidated on updates.
        ref_provider: Optional source of reconciled refs for reloads.
        clone_depth: Minimum history depth requested when materialising a branch.
    """

    def __init__(
        self,
        engine: GitEngine,
        router: VendorReadRouter,
        refs: RefStore,
        loader: CommitLoader,
        files: FileReader,
        *,
        ref_provider: RefProvider | None = None,
        clone_depth: int = DEFAULT_COMMIT_DEPTH,
    ) -> None:
        self._engine = engine
        self._router = router
        self._refs = refs
        self._loader = loader
        self._files = files
        self._ref_provider = ref_provider
        self._clone_depth = clone_depth
        self._repo: RepoAnnouncement | None = None
        self._observers: list[BranchObserver] = []
        self._selected: str | None = None
        self._switching = False
        self._generation = 0
        self._branch_change_counter = 0

    def set_repo(self, repo: RepoAnnouncement) -> None:
        self._repo = repo

    @property
    def selected_branch(self) -> str | None:
        return self._selected

    @property
    def is_switching(self) -> bool:
        return self._switching

    @property
    def branch_change_counter(self) -> int:
        return self._branch_change_counter

    def subscribe(self, observer: BranchObserver) -> Callable[[], None]:
        """Register *observer*; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def set_selected_branch(self, name: str) -> BranchSwitchEvent:
        """Switch to branch or tag *name*.

        Never raises; a failure is reported in the returned event's
        ``error`` and to observers.
        """
        self._generation += 1
        generation = self._generation
        self._switching = True
        short = short_ref_name(name) or name
        self._selected = short
        is_tag = self._refs.is_tag(name)
        error: str | None = None
        log = logger.bind(branch=short, generation=generation)
        log.info("branch_switch_started", is_tag=is_tag)

        try:
            repo = self._repo
            if repo is None:
                raise FatalError(
                    "No repository bound to the branch coordinator",
                    context=ErrorContext(op="setSelectedBranch", branch=short),
                )

            has_vendor = self._router.has_vendor_support(repo.clone_urls)
            if is_tag:
                log.info("branch_switch_tag_selected")
            else:
                await self._sync_and_materialise(repo, short, has_vendor)

            if generation == self._generation:
                await self._reload(repo, short)
        except Exception as e:
            error = f"Failed to switch branch: {e}"
            log.error("branch_switch_failed", error=str(e))
        finally:
            if generation == self._generation:
                self._switching = False

        event = self._event(short, is_tag, error, generation)
        if generation == self._generation:
            self._publish(event)
            log.info("branch_switch_completed", success=event.success)
        else:
            log.info("branch_switch_superseded", latest=self._generation)
        self._branch_change_counter += 1
        return event

    async def _reload(self, repo: RepoAnnouncement, branch: str) -> None:
        self._loader.reset(clear_branch=True)
        main_branch = self._refs.main_branch
        self._loader.set_current_branch(branch, main_branch)
        result = await self._loader.load_commits(repo.repo_id, branch, main_branch)
        if not result.success and not result.stale:
            logger.warning("branch_switch_commits_failed", branch=branch, error=result.error)

        await self._refs.load_all_refs(repo, self._ref_provider)

    async def _sync_and_materialise(
        self, repo: RepoAnnouncement, branch: str, has_vendor: bool
    ) -> None:
        clear_files = False
        if not has_vendor and repo.clone_urls:
            try:
                sync = await self._engine.sync_with_remote(
                    repo.repo_id, list(repo.clone_urls), branch
                )
            except Exception as e:
                logger.warning("branch_sync_failed", branch=branch, error=str(e))
                clear_files = True
            else:
                clear_files = sync.needs_update or not sync.success
                logger.debug("branch_synced", branch=branch, needs_update=sync.needs_update)
        elif has_vendor:
            logger.debug("branch_sync_skipped", branch=branch, reason="vendor_available")

        clone = await self._engine.ensure_full_clone(
            repo.repo_id, branch, self._clone_depth
        )
        if not clone.success:
            if not has_vendor:
                raise network_error(
                    f"Failed to ensure full clone: {clone.error or 'unknown error'}",
                    context=ErrorContext(op="ensureFullClone", branch=branch),
                )
            logger.warning("branch_clone_failed", branch=branch, error=clone.error)

        if clear_files:
            self._files.clear_cache()
            logger.info("file_cache_invalidated", branch=branch)

    def _event(
        self, branch: str, is_tag: bool, error: str | None, generation: int
    ) -> BranchSwitchEvent:
        return BranchSwitchEvent(
            branch=branch,
            is_tag=is_tag,
            commits=tuple(self._loader.commits),
            total_commits=self._loader.total_commits,
            has_more=self._loader.has_more,
            error=error,
            generation=generation,
        )

    def _publish(self, event: BranchSwitchEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("branch_observer_failed", branch=event.branch)
