"""Unit tests for the namespaced TTL cache."""

from __future__ import annotations

import pytest

from repoweave.cache import CacheManager
from repoweave.config import CacheConfig


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheManager:
    manager = CacheManager(clock=clock)
    manager.register_cache("pages", CacheConfig(ttl_seconds=60))
    return manager


class TestGetSet:
    """Tests for reads and writes."""

    def test_round_trip(self, cache: CacheManager) -> None:
        cache.set("pages", "k", {"a": 1})

        assert cache.get("pages", "k") == {"a": 1}

    def test_missing_key(self, cache: CacheManager) -> None:
        assert cache.get("pages", "absent") is None

    def test_expired_entry_is_dropped(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("pages", "k", "v")
        clock.advance(60)

        assert cache.get("pages", "k") is None
        assert cache.stats("pages").size == 0

    def test_entry_valid_before_expiry(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("pages", "k", "v")
        clock.advance(59.9)

        assert cache.get("pages", "k") == "v"

    def test_per_entry_ttl(self, cache: CacheManager, clock: FakeClock) -> None:
        cache.set("pages", "short", "v", ttl=1)
        clock.advance(2)

        assert cache.get("pages", "short") is None

    def test_overwrite(self, cache: CacheManager) -> None:
        cache.set("pages", "k", "old")
        cache.set("pages", "k", "new")

        assert cache.get("pages", "k") == "new"
        assert cache.stats("pages").size == 1

    def test_remove(self, cache: CacheManager) -> None:
        cache.set("pages", "k", "v")
        cache.remove("pages", "k")

        assert cache.get("pages", "k") is None


class TestNamespaces:
    """Tests for namespace registration and isolation."""

    def test_unregistered_namespace_is_noop(self, cache: CacheManager) -> None:
        cache.set("other", "k", "v")

        assert cache.get("other", "k") is None
        assert cache.is_registered("other") is False

    def test_namespaces_are_isolated(self, cache: CacheManager) -> None:
        cache.register_cache("files", CacheConfig(ttl_seconds=60))
        cache.set("pages", "k", "page")
        cache.set("files", "k", "file")

        cache.clear("pages")

        assert cache.get("pages", "k") is None
        assert cache.get("files", "k") == "file"

    def test_reregistering_keeps_entries(self, cache: CacheManager) -> None:
        cache.set("pages", "k", "v")
        cache.register_cache("pages", CacheConfig(ttl_seconds=5))

        assert cache.get("pages", "k") == "v"

    def test_key_prefix_is_applied(self, clock: FakeClock) -> None:
        manager = CacheManager(clock=clock)
        manager.register_cache("p", CacheConfig(key_prefix="pre_"))
        manager.set("p", "k", "v")

        assert manager.get("p", "k") == "v"

    def test_max_size_evicts_oldest(self, clock: FakeClock) -> None:
        manager = CacheManager(clock=clock)
        manager.register_cache("p", CacheConfig(max_size=2))
        manager.set("p", "a", 1)
        manager.set("p", "b", 2)
        manager.set("p", "c", 3)

        assert manager.get("p", "a") is None
        assert manager.get("p", "b") == 2
        assert manager.get("p", "c") == 3

    def test_dispose_drops_everything(self, cache: CacheManager) -> None:
        cache.set("pages", "k", "v")
        cache.dispose()

        assert cache.is_registered("pages") is False
        assert cache.get("pages", "k") is None


class TestMaintenance:
    """Tests for cleanup and statistics."""

    def test_cleanup_removes_only_expired(
        self, cache: CacheManager, clock: FakeClock
    ) -> None:
        cache.set("pages", "old", 1, ttl=10)
        cache.set("pages", "new", 2, ttl=100)
        clock.advance(50)

        assert cache.cleanup("pages") == 1
        assert cache.get("pages", "new") == 2

    def test_stats_count_hits_and_misses(self, cache: CacheManager) -> None:
        cache.set("pages", "k", "v")
        cache.get("pages", "k")
        cache.get("pages", "k")
        cache.get("pages", "absent")

        stats = cache.stats("pages")

        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(2 / 3)
        assert stats.to_dict()["size"] == 1

    def test_stats_of_unknown_namespace(self, cache: CacheManager) -> None:
        assert cache.stats("absent").to_dict() == {
            "size": 0,
            "hits": 0,
            "misses": 0,
            "hit_rate": 0.0,
        }
