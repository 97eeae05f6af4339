"""Branch and tag state of one repository.

Refs come from two places: the maintainers' published state document
(``refs/heads/*``, ``refs/tags/*`` and ``HEAD`` entries), and the live
ref listing served by a vendor or the git engine. :class:`RefStore`
merges both and resolves the main branch.
"""

from __future__ import annotations

import re
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

from repoweave.constants import (
    DEFAULT_BRANCH_NAMES,
    MIN_REF_RELOAD_INTERVAL,
    ULTIMATE_FALLBACK_BRANCH,
)
from repoweave.engine import GitEngine, RepoAnnouncement
from repoweave.logging import get_logger
from repoweave.remotes import short_ref_name
from repoweave.vendors import RefType, VendorReadRouter, VendorRef

__all__ = [
    "BranchInfo",
    "RefProvider",
    "RefStore",
    "StateRef",
    "parse_head_ref",
    "parse_state_ref",
]

logger = get_logger(__name__)

_STATE_REF_RE = re.compile(r"^refs/(heads|tags)/(.+)$")
_HEAD_REF_RE = re.compile(r"^ref: refs/heads/(.+)$")

#: Callable returning an already reconciled ref listing.
RefProvider = Callable[[], Awaitable[Sequence[VendorRef]]]


@dataclass(frozen=True, slots=True)
class StateRef:
    """A ref announced in a repository state document."""

    full_ref: str
    short_name: str
    type: RefType
    commit_id: str
    parent_commits: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BranchInfo:
    """A branch with its state-document annotation, if any."""

    name: str
    commit_id: str
    is_head: bool = False
    state_ref: StateRef | None = None

    @property
    def from_state(self) -> bool:
        return self.state_ref is not None


def parse_state_ref(entry: Sequence[str], commit_id: str | None = None) -> StateRef | None:
    """Parse ``["refs/heads/main", "<sha>", *parents]``.

    Returns None for anything that is not a head or tag with a commit id.
    """
    if len(entry) < 2:
        return None
    match = _STATE_REF_RE.match(entry[0])
    ref_commit = entry[1] or commit_id
    if not match or not ref_commit:
        return None
    return StateRef(
        full_ref=entry[0],
        short_name=match.group(2),
        type=RefType(match.group(1)),
        commit_id=ref_commit,
        parent_commits=tuple(entry[2:]),
    )


def parse_head_ref(entry: Sequence[str]) -> str | None:
    """Parse ``["HEAD", "ref: refs/heads/main"]`` into ``"main"``."""
    if len(entry) < 2 or entry[0] != "HEAD":
        return None
    match = _HEAD_REF_RE.match(entry[1])
    return match.group(1) if match else None


def _sort_key(ref: VendorRef) -> tuple[int, str]:
    return (0 if ref.type == RefType.HEADS else 1, ref.name)


class RefStore:
    """Branches, tags and main branch of one repository.

    Args:
        engine: Git engine RPC handle for the ref listing fallback.
        router: Vendor-first read router.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        engine: GitEngine,
        router: VendorReadRouter,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._router = router
        self._clock = clock
        self._state_refs: dict[str, StateRef] = {}
        self._refs: list[VendorRef] = []
        self._branches: list[BranchInfo] = []
        self._main_branch: str | None = None
        self._loading = False
        self._last_load_at: float | None = None

    # -------------------------------------------------------------------------
    # State document
    # -------------------------------------------------------------------------

    def process_state(self, entries: Iterable[Sequence[str]]) -> None:
        """Replace the announced refs with those of a state document."""
        self._state_refs.clear()
        head: str | None = None
        for entry in entries:
            if not entry:
                continue
            if entry[0] == "HEAD":
                head = parse_head_ref(entry) or head
            elif entry[0].startswith("refs/"):
                ref = parse_state_ref(entry)
                if ref is not None:
                    self._state_refs[ref.short_name] = ref
        if head:
            self._main_branch = head
        logger.debug("state_refs_processed", refs=len(self._state_refs), head=head)

    def state_ref(self, short_name: str) -> StateRef | None:
        return self._state_refs.get(short_name)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def refs(self) -> list[VendorRef]:
        return list(self._refs)

    @property
    def branches(self) -> list[BranchInfo]:
        return list(self._branches)

    @property
    def heads(self) -> list[VendorRef]:
        return [r for r in self._refs if r.type == RefType.HEADS]

    @property
    def tags(self) -> list[VendorRef]:
        return [r for r in self._refs if r.type == RefType.TAGS]

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def main_branch(self) -> str:
        """The main branch.

        Resolution order: announced ``HEAD``, a head-flagged branch, the
        first of ``main``/``master``/``develop``/``dev`` that exists, the
        first branch, then ``"master"``.
        """
        if self._main_branch:
            return self._main_branch
        for branch in self._branches:
            if branch.is_head:
                return branch.name
        names = {b.name for b in self._branches}
        for candidate in DEFAULT_BRANCH_NAMES:
            if candidate in names:
                return candidate
        if self._branches:
            return self._branches[0].name
        return ULTIMATE_FALLBACK_BRANCH

    def set_main_branch(self, name: str | None) -> None:
        self._main_branch = name

    def get_branch(self, name_or_ref: str) -> BranchInfo | None:
        """Find a branch by short name or full ``refs/heads/...`` name."""
        short = short_ref_name(name_or_ref)
        for branch in self._branches:
            if branch.name in (name_or_ref, short):
                return branch
        return None

    def is_tag(self, name: str) -> bool:
        """True if *name* is a known tag and not also a branch."""
        if name.startswith("refs/tags/"):
            return True
        short = short_ref_name(name)
        if any(r.name == short and r.type == RefType.HEADS for r in self._refs):
            return False
        if any(r.name == short and r.type == RefType.TAGS for r in self._refs):
            return True
        state = self._state_refs.get(short)
        return state is not None and state.type == RefType.TAGS

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_all_refs(
        self,
        repo: RepoAnnouncement,
        ref_provider: RefProvider | None = None,
    ) -> list[VendorRef]:
        """Reload branches and tags.

        Uses *ref_provider* when given, otherwise the router's ref listing.
        A reload requested while another started less than
        ``MIN_REF_RELOAD_INTERVAL`` seconds ago is skipped.

        Raises:
            GitAccessError: If the listing failed. Stored refs are cleared.
        """
        now = self._clock()
        if (
            self._loading
            and self._last_load_at is not None
            and now - self._last_load_at < MIN_REF_RELOAD_INTERVAL
        ):
            logger.debug("ref_reload_skipped", repo_id=repo.repo_id)
            return self.refs

        self._loading = True
        self._last_load_at = now
        try:
            if ref_provider is not None:
                loaded = list(await ref_provider())
            else:
                listing = await self._router.list_refs(self._engine, repo)
                loaded = list(listing.refs)
        except Exception:
            self._refs = []
            self._branches = []
            raise
        finally:
            self._loading = False

        self._refs = sorted(loaded, key=_sort_key)
        main = self._main_branch
        self._branches = [
            BranchInfo(
                name=ref.name,
                commit_id=ref.commit_id,
                is_head=ref.name == main,
                state_ref=self._state_refs.get(ref.name),
            )
            for ref in self._refs
            if ref.type == RefType.HEADS
        ]
        logger.debug(
            "refs_loaded",
            repo_id=repo.repo_id,
            branches=len(self._branches),
            tags=len(self._refs) - len(self._branches),
        )
        return self.refs

    def reset(self) -> None:
        self._state_refs.clear()
        self._refs = []
        self._branches = []
        self._main_branch = None
        self._loading = False
        self._last_load_at = None
