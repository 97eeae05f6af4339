"""GitEngine protocol definition.

The git engine is the local git implementation reached over an RPC
boundary. Its internals are out of scope; this protocol is the whole
contract the coordinators rely on. Any object with these coroutine
methods satisfies it via structural typing.

RPC calls have no cancellation: once awaited they run to completion or
failure. Engines raise on transport failure and report command failure
through ``success=False`` results.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from repoweave.engine.models import (
    CloneResult,
    CommitCountResult,
    CommitHistoryResult,
    EngineBranch,
    EngineFileEntry,
    PushRequest,
    PushResult,
    RepoAnnouncement,
    RepoDataLevel,
    SyncResult,
)
from repoweave.exceptions import FatalError

__all__ = ["GitEngine", "UnavailableEngine"]


@runtime_checkable
class GitEngine(Protocol):
    """RPC contract of the git execution engine."""

    async def get_repo_data_level(self, repo_id: str) -> RepoDataLevel:
        """Return how much of *repo_id* is materialised locally."""
        ...

    async def ensure_full_clone(
        self, repo_id: str, branch: str, depth: int
    ) -> CloneResult:
        """Deepen a shallow/partial clone of *branch* to at least *depth* commits."""
        ...

    async def get_commit_history(
        self, repo_id: str, branch: str, depth: int
    ) -> CommitHistoryResult:
        """Return up to *depth* commits of *branch*, newest first."""
        ...

    async def get_commit_count(self, repo_id: str, branch: str) -> CommitCountResult:
        """Return the exact number of commits reachable from *branch*."""
        ...

    async def sync_with_remote(
        self, repo_id: str, clone_urls: list[str], branch: str
    ) -> SyncResult:
        """Fetch *branch* from the remotes and report whether it moved."""
        ...

    async def list_repo_files(
        self, repo: RepoAnnouncement, branch: str, path: str
    ) -> list[EngineFileEntry]:
        """List the directory *path* at *branch*."""
        ...

    async def get_repo_file_content(
        self, repo: RepoAnnouncement, branch: str, path: str
    ) -> str:
        """Return the text content of *path* at *branch*."""
        ...

    async def list_branches(self, repo: RepoAnnouncement) -> list[EngineBranch]:
        """List local branches of *repo*."""
        ...

    async def safe_push_to_remote(self, request: PushRequest) -> PushResult:
        """Push a branch to one remote with safety preflight checks."""
        ...


class UnavailableEngine:
    """Engine stand-in for vendor-only use; every call raises ``FatalError``."""

    message = "no git engine configured"

    def _fail(self, op: str) -> FatalError:
        return FatalError(f"{self.message} (op={op})")

    async def get_repo_data_level(self, repo_id: str) -> RepoDataLevel:
        raise self._fail("getRepoDataLevel")

    async def ensure_full_clone(
        self, repo_id: str, branch: str, depth: int
    ) -> CloneResult:
        raise self._fail("ensureFullClone")

    async def get_commit_history(
        self, repo_id: str, branch: str, depth: int
    ) -> CommitHistoryResult:
        raise self._fail("getCommitHistory")

    async def get_commit_count(self, repo_id: str, branch: str) -> CommitCountResult:
        raise self._fail("getCommitCount")

    async def sync_with_remote(
        self, repo_id: str, clone_urls: list[str], branch: str
    ) -> SyncResult:
        raise self._fail("syncWithRemote")

    async def list_repo_files(
        self, repo: RepoAnnouncement, branch: str, path: str
    ) -> list[EngineFileEntry]:
        raise self._fail("listRepoFiles")

    async def get_repo_file_content(
        self, repo: RepoAnnouncement, branch: str, path: str
    ) -> str:
        raise self._fail("getRepoFileContent")

    async def list_branches(self, repo: RepoAnnouncement) -> list[EngineBranch]:
        raise self._fail("listBranches")

    async def safe_push_to_remote(self, request: PushRequest) -> PushResult:
        raise self._fail("safePushToRemote")
