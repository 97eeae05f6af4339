"""Unit tests for paginated, cached commit history loading."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlsplit

import pytest
from fakes import FakeVendorHttp, github_commit_json, make_commits

from repoweave.cache import CacheManager
from repoweave.config import CommitConfig
from repoweave.constants import COMMIT_CACHE_NAME
from repoweave.credentials import StaticCredentialStore
from repoweave.engine import (
    CloneResult,
    CommitCountResult,
    CommitHistoryResult,
    RepoAnnouncement,
    RepoDataLevel,
)
from repoweave.exceptions import FatalError
from repoweave.history import CachedCommitPage, CommitLoader
from repoweave.vendors import VendorReadRouter

GITLAB_URL = "https://gitlab.com/group/hello.git"
GITHUB_URL = "https://github.com/octo/hello.git"

VENDOR_REPO = RepoAnnouncement(
    repo_id="npub1abc/hello", clone_urls=(GITLAB_URL, GITHUB_URL), name="hello"
)


def github_history(total: int) -> Any:
    """Route answering GitHub ``/commits`` pages out of *total* commits."""

    def answer(url: str, headers: dict[str, str]) -> list[dict[str, Any]]:
        query = parse_qs(urlsplit(url).query)
        page = int(query["page"][0])
        per_page = int(query["per_page"][0])
        start = (page - 1) * per_page
        return [
            github_commit_json(f"v{i}") for i in range(start, min(start + per_page, total))
        ]

    return answer


def engine_history(total: int) -> Any:
    """Engine side effect returning the newest *depth* of *total* commits."""
    commits = make_commits(total, prefix="e")

    async def answer(repo_id: str, branch: str, depth: int) -> CommitHistoryResult:
        return CommitHistoryResult(success=True, commits=commits[:depth])

    return answer


def _loader(
    engine: AsyncMock,
    repo: RepoAnnouncement,
    http: FakeVendorHttp | None = None,
    cache: CacheManager | None = None,
    config: CommitConfig | None = None,
) -> CommitLoader:
    router = VendorReadRouter(StaticCredentialStore(), http=http or FakeVendorHttp())
    loader = CommitLoader(engine, router, cache if cache is not None else CacheManager(), config)
    loader.set_repo(repo)
    return loader


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    """Tests for fail-fast argument checks."""

    @pytest.mark.asyncio
    async def test_missing_repo_id(self, mock_engine: AsyncMock) -> None:
        loader = CommitLoader(mock_engine)

        result = await loader.load_commits(None, "main")

        assert result.success is False
        assert result.error == "Repository ID and main branch are required"
        mock_engine.get_commit_history.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_branch(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        loader = _loader(mock_engine, engine_repo)

        result = await loader.load_commits(engine_repo.repo_id)

        assert result.success is False
        mock_engine.get_commit_history.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_page(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        result = await _loader(mock_engine, engine_repo).load_page(0)

        assert result.success is False
        assert result.error == "Invalid page number: 0"

    def test_page_size_bounds(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        loader = _loader(mock_engine, engine_repo)

        with pytest.raises(ValueError, match="between 1 and 100"):
            loader.set_page_size(101)
        with pytest.raises(ValueError):
            loader.set_page_size(0)

        loader.set_page_size(10)
        assert loader.pagination.page_size == 10

    @pytest.mark.asyncio
    async def test_get_commit_history_requires_repo(self, mock_engine: AsyncMock) -> None:
        with pytest.raises(FatalError, match="No repository bound"):
            await CommitLoader(mock_engine).get_commit_history()


# =============================================================================
# Vendor-first loading
# =============================================================================


class TestVendorLoading:
    """Tests for loading history through vendor APIs."""

    @pytest.mark.asyncio
    async def test_second_vendor_serves_and_page_is_cached(
        self, mock_engine: AsyncMock
    ) -> None:
        """A 404 on the first vendor URL falls through to the second one."""
        http = FakeVendorHttp({"api.github.com": github_history(3)})
        loader = _loader(mock_engine, VENDOR_REPO, http)

        first = await loader.load_commits(VENDOR_REPO.repo_id, "main", "main")

        assert first.success is True
        assert first.from_cache is False
        assert first.from_vendor is True
        assert first.total_count == 3
        assert [c.oid for c in first.commits] == ["v0", "v1", "v2"]
        assert http.urls[0].startswith("https://gitlab.com/api/v4/")
        assert http.urls[1].startswith("https://api.github.com/")
        assert loader.has_more is False

        calls = len(http.calls)
        second = await loader.load_commits(VENDOR_REPO.repo_id, "main", "main")

        assert second.success is True
        assert second.from_cache is True
        assert second.total_count == 3
        assert [c.oid for c in second.commits] == ["v0", "v1", "v2"]
        assert len(http.calls) == calls
        mock_engine.get_commit_history.assert_not_called()

    @pytest.mark.asyncio
    async def test_full_vendor_page_uses_estimate(self, mock_engine: AsyncMock) -> None:
        http = FakeVendorHttp({"api.github.com": github_history(45)})
        loader = _loader(mock_engine, VENDOR_REPO, http)

        first = await loader.load_commits(VENDOR_REPO.repo_id, "main", "main")

        assert len(first.commits) == 30
        assert first.total_count == 30
        assert loader.has_more is True
        mock_engine.get_commit_count.assert_not_called()

        more = await loader.load_more_commits()

        assert more.success is True
        assert [c.oid for c in more.commits] == [f"v{i}" for i in range(45)]
        assert more.total_count == 30
        assert loader.has_more is False
        assert loader.pagination.current_page == 2

    @pytest.mark.asyncio
    async def test_deep_pages_span_several_vendor_requests(
        self, mock_engine: AsyncMock
    ) -> None:
        http = FakeVendorHttp({"api.github.com": github_history(250)})
        loader = _loader(
            mock_engine, RepoAnnouncement("npub1abc/hello", (GITHUB_URL,)), http
        )
        loader.set_page_size(100)
        loader.set_current_branch("main", "main")

        result = await loader.load_page(2)

        assert [c.oid for c in result.commits][:1] == ["v100"]
        assert len(result.commits) == 100
        assert any("page=1&per_page=100" in url for url in http.urls)
        assert any("page=2&per_page=100" in url for url in http.urls)

    @pytest.mark.asyncio
    async def test_every_vendor_failing_falls_back_to_engine(
        self, mock_engine: AsyncMock
    ) -> None:
        http = FakeVendorHttp()
        mock_engine.get_commit_history.side_effect = engine_history(5)
        loader = _loader(mock_engine, VENDOR_REPO, http)

        result = await loader.load_commits(VENDOR_REPO.repo_id, "main", "main")

        assert result.success is True
        assert result.from_vendor is False
        assert [c.oid for c in result.commits] == [f"e{i}" for i in range(5)]
        assert http.urls[0].startswith("https://gitlab.com/")
        assert http.urls[1].startswith("https://api.github.com/")
        mock_engine.get_commit_history.assert_awaited_once_with(
            VENDOR_REPO.repo_id, "main", 30
        )


# =============================================================================
# Engine loading and totals
# =============================================================================


class TestEngineLoading:
    """Tests for engine-only repositories."""

    @pytest.mark.asyncio
    async def test_short_history_sets_exact_total(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(10)
        loader = _loader(mock_engine, engine_repo)

        result = await loader.load_commits(engine_repo.repo_id, "main", "main")

        assert result.total_count == 10
        assert loader.has_more is False
        mock_engine.get_commit_count.assert_not_called()

    @pytest.mark.asyncio
    async def test_total_is_counted_once_per_branch(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(75)
        mock_engine.get_commit_count.return_value = CommitCountResult(True, 75)
        loader = _loader(mock_engine, engine_repo)

        first = await loader.load_commits(engine_repo.repo_id, "main", "main")
        second = await loader.load_page(2)

        assert first.total_count == 75
        assert second.total_count == 75
        assert [c.oid for c in second.commits] == [f"e{i}" for i in range(60)]
        mock_engine.get_commit_count.assert_awaited_once_with(engine_repo.repo_id, "main")

    @pytest.mark.asyncio
    async def test_page_one_has_more_follows_loaded_slice(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(75)
        mock_engine.get_commit_count.return_value = CommitCountResult(True, 75)
        loader = _loader(mock_engine, engine_repo)

        await loader.load_commits(engine_repo.repo_id, "main", "main")

        # The engine returns exactly the requested depth.
        assert loader.has_more is False
        assert loader.total_commits == 75

    @pytest.mark.asyncio
    async def test_count_failure_assumes_more(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(40)
        mock_engine.get_commit_count.side_effect = RuntimeError("rpc closed")
        loader = _loader(mock_engine, engine_repo)

        result = await loader.load_commits(engine_repo.repo_id, "main", "main")

        assert result.success is True
        assert result.total_count == 30
        assert loader.has_more is True

    @pytest.mark.asyncio
    async def test_count_failure_without_router(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(40)
        mock_engine.get_commit_count.return_value = CommitCountResult(False, error="x")
        loader = CommitLoader(mock_engine)
        loader.set_repo(engine_repo)

        result = await loader.load_commits(engine_repo.repo_id, "main", "main")

        assert result.total_count == 30
        assert loader.has_more is True

    @pytest.mark.asyncio
    async def test_shallow_clone_is_deepened(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_repo_data_level.return_value = RepoDataLevel.SHALLOW
        mock_engine.get_commit_history.side_effect = engine_history(3)
        loader = _loader(mock_engine, engine_repo)

        result = await loader.load_commits(engine_repo.repo_id, "dev", "main")

        assert result.success is True
        mock_engine.ensure_full_clone.assert_awaited_once_with(
            engine_repo.repo_id, "dev", 100
        )

    @pytest.mark.asyncio
    async def test_failed_deepening_is_reported(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_repo_data_level.return_value = RepoDataLevel.REFS
        mock_engine.ensure_full_clone.return_value = CloneResult(False, "disk full")
        loader = _loader(mock_engine, engine_repo)

        result = await loader.load_commits(engine_repo.repo_id, "main", "main")

        assert result.success is False
        assert result.error is not None
        assert "Failed to ensure full clone" in result.error
        assert "data_level=refs" in result.error
        assert "disk full" in result.error
        assert loader.commits == []
        mock_engine.get_commit_history.assert_not_called()

    @pytest.mark.asyncio
    async def test_engine_history_failure(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = None
        mock_engine.get_commit_history.return_value = CommitHistoryResult(
            False, error="bad ref"
        )

        result = await _loader(mock_engine, engine_repo).load_commits(
            engine_repo.repo_id, "main", "main"
        )

        assert result.success is False
        assert "Failed to load commit history: bad ref" in (result.error or "")

    @pytest.mark.asyncio
    async def test_branch_fallback_is_accepted(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.return_value = CommitHistoryResult(
            True, commits=make_commits(2), fallback_used="master"
        )

        result = await _loader(mock_engine, engine_repo).load_commits(
            engine_repo.repo_id, "main", "main"
        )

        assert result.success is True
        assert len(result.commits) == 2


# =============================================================================
# Paging, refresh and caching
# =============================================================================


class TestPaging:
    """Tests for paging operations and the page cache."""

    @pytest.mark.asyncio
    async def test_load_more_without_more(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(5)
        loader = _loader(mock_engine, engine_repo)
        await loader.load_commits(engine_repo.repo_id, "main", "main")

        result = await loader.load_more_commits()

        assert result.success is False
        assert result.error == "No more commits to load or already loading"

    @pytest.mark.asyncio
    async def test_refresh_is_idempotent(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(12)
        loader = _loader(mock_engine, engine_repo)
        await loader.load_commits(engine_repo.repo_id, "main", "main")

        first = await loader.refresh_commits()
        second = await loader.refresh_commits()

        assert first.success and second.success
        assert first.from_cache is False
        assert second.from_cache is False
        assert first.commits == second.commits
        assert first.total_count == second.total_count == 12
        assert mock_engine.get_commit_history.await_count == 3

    @pytest.mark.asyncio
    async def test_cache_key_layout(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(4)
        cache = CacheManager()
        loader = _loader(mock_engine, engine_repo, cache=cache)
        loader.set_repo(engine_repo, repo_key="key-1")

        await loader.load_commits(engine_repo.repo_id, "refs/heads/main", "main")

        cached = cache.get(COMMIT_CACHE_NAME, "key-1:main:p1:s30")
        assert isinstance(cached, CachedCommitPage)
        assert cached.total == 4
        assert cached.repo_key == "key-1"

    @pytest.mark.asyncio
    async def test_cache_entry_for_other_repo_is_ignored(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(2)
        cache = CacheManager()
        loader = _loader(mock_engine, engine_repo, cache=cache)
        cache.set(
            COMMIT_CACHE_NAME,
            f"{engine_repo.repo_id}:main:p1:s30",
            CachedCommitPage(
                commits=make_commits(9, prefix="x"),
                total=9,
                page=1,
                page_size=30,
                branch="main",
                repo_key="someone-else",
            ),
        )

        result = await loader.load_commits(engine_repo.repo_id, "main", "main")

        assert result.from_cache is False
        assert [c.oid for c in result.commits] == ["e0", "e1"]

    @pytest.mark.asyncio
    async def test_caching_disabled(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(2)
        loader = _loader(
            mock_engine, engine_repo, config=CommitConfig(enable_caching=False)
        )

        await loader.load_commits(engine_repo.repo_id, "main", "main")
        result = await loader.load_commits(engine_repo.repo_id, "main", "main")

        assert result.from_cache is False
        assert mock_engine.get_commit_history.await_count == 2

    @pytest.mark.asyncio
    async def test_switching_branch_resets_pages(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        mock_engine.get_commit_history.side_effect = engine_history(50)
        mock_engine.get_commit_count.return_value = CommitCountResult(True, 50)
        loader = _loader(mock_engine, engine_repo)
        await loader.load_commits(engine_repo.repo_id, "main", "main")
        await loader.load_page(2)

        result = await loader.load_commits(engine_repo.repo_id, "dev", "main")

        assert loader.current_branch == "dev"
        assert loader.pagination.current_page == 1
        assert len(result.commits) == 30

    def test_stats(self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement) -> None:
        loader = _loader(mock_engine, engine_repo)
        loader.set_current_branch("main", "main")

        stats = loader.stats()

        assert stats["current_branch"] == "main"
        assert stats["pagination"]["loaded"] == 0  # type: ignore[index]
        assert stats["cache"]["size"] == 0  # type: ignore[index]


# =============================================================================
# Stale loads
# =============================================================================


class TestStaleLoads:
    """Tests for discarding loads that resolve after a branch change."""

    @pytest.mark.asyncio
    async def test_branch_change_mid_flight_discards_result(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_history(repo_id: str, branch: str, depth: int) -> CommitHistoryResult:
            started.set()
            await release.wait()
            return CommitHistoryResult(True, commits=make_commits(3, prefix="old"))

        mock_engine.get_commit_history.side_effect = slow_history
        loader = _loader(mock_engine, engine_repo)

        task = asyncio.create_task(
            loader.load_commits(engine_repo.repo_id, "main", "main")
        )
        await started.wait()
        assert loader.is_loading is True

        loader.reset(clear_branch=True)
        loader.set_current_branch("dev", "main")
        release.set()
        result = await task

        assert result.success is False
        assert result.stale is True
        assert loader.commits == []
        assert loader.current_branch == "dev"
        assert loader.is_loading is False

    @pytest.mark.asyncio
    async def test_stale_failure_is_not_reported_as_error(
        self, mock_engine: AsyncMock, engine_repo: RepoAnnouncement
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def failing_history(
            repo_id: str, branch: str, depth: int
        ) -> CommitHistoryResult:
            started.set()
            await release.wait()
            raise RuntimeError("connection reset")

        mock_engine.get_commit_history.side_effect = failing_history
        loader = _loader(mock_engine, engine_repo)

        task = asyncio.create_task(
            loader.load_commits(engine_repo.repo_id, "main", "main")
        )
        await started.wait()
        loader.set_current_branch("release")
        release.set()
        result = await task

        assert result.stale is True
        assert result.error is None
