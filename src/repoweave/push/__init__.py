"""Multi-remote push fan-out."""

from __future__ import annotations

from repoweave.push.coordinator import (
    PushCoordinator,
    PushFanoutResult,
    RemotePushOutcome,
)

__all__ = ["PushCoordinator", "PushFanoutResult", "RemotePushOutcome"]
