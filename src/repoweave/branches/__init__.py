"""Ref state and branch switching."""

from __future__ import annotations

from repoweave.branches.coordinator import (
    BranchObserver,
    BranchSwitchCoordinator,
    BranchSwitchEvent,
)
from repoweave.branches.refs import (
    BranchInfo,
    RefProvider,
    RefStore,
    StateRef,
    parse_head_ref,
    parse_state_ref,
)

__all__ = [
    "BranchInfo",
    "BranchObserver",
    "BranchSwitchCoordinator",
    "BranchSwitchEvent",
    "RefProvider",
    "RefStore",
    "StateRef",
    "parse_head_ref",
    "parse_state_ref",
]
