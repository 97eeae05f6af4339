"""Namespaced TTL caching shared by the loaders."""

from __future__ import annotations

from repoweave.cache.manager import CacheEntry, CacheManager, CacheStats

__all__ = ["CacheEntry", "CacheManager", "CacheStats"]
