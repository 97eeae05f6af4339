"""Typed request and result models for the git engine RPC boundary.

All models are frozen dataclasses with ``to_dict()`` for logging and CLI
output. Timestamps on engine commits are unix seconds.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

# =============================================================================
# Repository identity
# =============================================================================


@dataclass(frozen=True, slots=True)
class RepoAnnouncement:
    """What the engine needs to locate a repository.

    Attributes:
        repo_id: Canonical repository key (e.g. ``"<owner-key>/<name>"``).
        clone_urls: Every clone URL announced for the repository, in order.
        name: Human-readable repository name.
    """

    repo_id: str
    clone_urls: tuple[str, ...] = ()
    name: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


class RepoDataLevel(str, Enum):
    """How much of a repository the engine has materialised locally."""

    NONE = "none"
    REFS = "refs"
    SHALLOW = "shallow"
    FULL = "full"


# =============================================================================
# Commit data (engine-native shape)
# =============================================================================


@dataclass(frozen=True, slots=True)
class EngineCommitPerson:
    """Author or committer of an engine commit.

    Attributes:
        name: Display name.
        email: Email address.
        timestamp: Unix seconds.
    """

    name: str = ""
    email: str = ""
    timestamp: int = 0


@dataclass(frozen=True, slots=True)
class EngineCommit:
    """A commit in the engine's native representation."""

    oid: str
    message: str = ""
    author: EngineCommitPerson = field(default_factory=EngineCommitPerson)
    committer: EngineCommitPerson = field(default_factory=EngineCommitPerson)
    parents: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class EngineFileEntry:
    """A directory entry as listed by the engine.

    ``type`` is whatever the engine reports (``"dir"``, ``"tree"``,
    ``"blob"``...); the router normalises it.
    """

    path: str
    type: str = "file"
    size: int | None = None
    mode: str | None = None
    oid: str | None = None


@dataclass(frozen=True, slots=True)
class EngineBranch:
    """A branch known to the engine."""

    name: str
    commit_id: str = ""


# =============================================================================
# Command results
# =============================================================================


@dataclass(frozen=True, slots=True)
class CommitHistoryResult:
    """Result of ``get_commit_history``.

    Attributes:
        success: True if history was read.
        commits: Commits newest first, up to the requested depth.
        fallback_used: Branch actually read when the requested one was missing.
        error: Error message when ``success`` is False.
    """

    success: bool
    commits: tuple[EngineCommit, ...] = ()
    fallback_used: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CommitCountResult:
    """Result of ``get_commit_count``."""

    success: bool
    count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CloneResult:
    """Result of ``ensure_full_clone``."""

    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Result of ``sync_with_remote``.

    Attributes:
        success: True if the remote was reached.
        needs_update: True if the local copy was behind the remote.
        error: Error message when ``success`` is False.
    """

    success: bool = True
    needs_update: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PushRequest:
    """Arguments of ``safe_push_to_remote``.

    ``token`` is excluded from ``repr`` and ``to_dict``.
    """

    repo_id: str
    remote_url: str
    branch: str
    token: str | None = field(default=None, repr=False)
    provider: str | None = None
    allow_force: bool = False
    confirm_destructive: bool = False

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data.pop("token")
        return data


@dataclass(frozen=True, slots=True)
class PushResult:
    """Result of ``safe_push_to_remote``."""

    success: bool
    error: str | None = None
    requires_confirmation: bool = False

    def to_dict(self) -> dict[str, object]:
        return asdict(self)
