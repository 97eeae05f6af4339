"""Paginated commit history with vendor-first loading and page caching."""

from __future__ import annotations

from repoweave.history.loader import (
    CachedCommitPage,
    CommitLoader,
    CommitLoadResult,
    CommitPageState,
    CommitPagination,
)

__all__ = [
    "CachedCommitPage",
    "CommitLoadResult",
    "CommitLoader",
    "CommitPageState",
    "CommitPagination",
]
