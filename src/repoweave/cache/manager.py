"""Namespaced in-memory TTL cache.

Each registered namespace is independent: its own lifetime, size limit and
key prefix. Writers to the same key simply overwrite each other; entries
are snapshots, so last-write-wins is all the coordination needed.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from repoweave.config import CacheConfig
from repoweave.logging import get_logger

__all__ = ["CacheEntry", "CacheManager", "CacheStats"]

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry:
    """A cached payload with its absolute expiry time.

    Attributes:
        key: Full key including the namespace prefix.
        payload: Cached value.
        expiry: Clock value after which the entry is stale.
        metadata: Optional caller-supplied annotations.
    """

    key: str
    payload: Any
    expiry: float
    metadata: dict[str, Any] | None = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Counters for one namespace."""

    size: int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
        }


class _Namespace:
    __slots__ = ("config", "entries", "hits", "misses")

    def __init__(self, config: CacheConfig) -> None:
        self.config = config
        self.entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self.hits = 0
        self.misses = 0


class CacheManager:
    """Registry of named TTL caches.

    Operations on an unregistered namespace are no-ops (reads miss), logged
    at warning level.

    Args:
        clock: Monotonic time source in seconds. Injected by tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._namespaces: dict[str, _Namespace] = {}

    def register_cache(self, name: str, config: CacheConfig) -> None:
        """Register (or reconfigure) namespace *name*.

        Re-registering keeps existing entries.
        """
        existing = self._namespaces.get(name)
        if existing is not None:
            existing.config = config
            return
        self._namespaces[name] = _Namespace(config)

    def is_registered(self, name: str) -> bool:
        return name in self._namespaces

    def _namespace(self, name: str) -> _Namespace | None:
        ns = self._namespaces.get(name)
        if ns is None:
            logger.warning("cache_not_registered", cache=name)
        return ns

    @staticmethod
    def _full_key(ns: _Namespace, key: str) -> str:
        return f"{ns.config.key_prefix}{key}"

    def get(self, name: str, key: str) -> Any | None:
        """Return the payload for *key*, or None if absent or expired."""
        ns = self._namespace(name)
        if ns is None:
            return None
        full_key = self._full_key(ns, key)
        entry = ns.entries.get(full_key)
        if entry is None:
            ns.misses += 1
            return None
        if entry.is_expired(self._clock()):
            del ns.entries[full_key]
            ns.misses += 1
            return None
        ns.hits += 1
        return entry.payload

    def set(
        self,
        name: str,
        key: str,
        value: Any,
        ttl: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Store *value* under *key* for *ttl* seconds (namespace default if None)."""
        ns = self._namespace(name)
        if ns is None:
            return
        full_key = self._full_key(ns, key)
        lifetime = ttl if ttl is not None else ns.config.ttl_seconds
        ns.entries.pop(full_key, None)
        ns.entries[full_key] = CacheEntry(
            key=full_key,
            payload=value,
            expiry=self._clock() + lifetime,
            metadata=metadata,
        )
        max_size = ns.config.max_size
        if max_size is not None:
            while len(ns.entries) > max_size:
                evicted, _ = ns.entries.popitem(last=False)
                logger.debug("cache_entry_evicted", cache=name, key=evicted)

    def remove(self, name: str, key: str) -> None:
        ns = self._namespace(name)
        if ns is None:
            return
        ns.entries.pop(self._full_key(ns, key), None)

    def clear(self, name: str) -> None:
        """Drop every entry of namespace *name*."""
        ns = self._namespace(name)
        if ns is None:
            return
        count = len(ns.entries)
        ns.entries.clear()
        logger.debug("cache_cleared", cache=name, entries=count)

    def cleanup(self, name: str) -> int:
        """Remove expired entries from *name*; returns how many were dropped."""
        ns = self._namespace(name)
        if ns is None:
            return 0
        now = self._clock()
        expired = [k for k, e in ns.entries.items() if e.is_expired(now)]
        for k in expired:
            del ns.entries[k]
        if expired:
            logger.debug("cache_cleanup", cache=name, removed=len(expired))
        return len(expired)

    def stats(self, name: str) -> CacheStats:
        ns = self._namespaces.get(name)
        if ns is None:
            return CacheStats(size=0, hits=0, misses=0)
        return CacheStats(size=len(ns.entries), hits=ns.hits, misses=ns.misses)

    def dispose(self) -> None:
        """Drop every namespace and entry."""
        self._namespaces.clear()
