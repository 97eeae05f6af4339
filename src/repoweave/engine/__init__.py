"""Git engine RPC contract and its typed results."""

from __future__ import annotations

from repoweave.engine.models import (
    CloneResult,
    CommitCountResult,
    CommitHistoryResult,
    EngineBranch,
    EngineCommit,
    EngineCommitPerson,
    EngineFileEntry,
    PushRequest,
    PushResult,
    RepoAnnouncement,
    RepoDataLevel,
    SyncResult,
)
from repoweave.engine.protocol import GitEngine, UnavailableEngine

__all__ = [
    "CloneResult",
    "CommitCountResult",
    "CommitHistoryResult",
    "EngineBranch",
    "EngineCommit",
    "EngineCommitPerson",
    "EngineFileEntry",
    "GitEngine",
    "PushRequest",
    "PushResult",
    "RepoAnnouncement",
    "RepoDataLevel",
    "SyncResult",
    "UnavailableEngine",
]
