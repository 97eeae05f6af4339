"""Unit tests for the vendor HTTP transport."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest
from aiolimiter import AsyncLimiter

from repoweave.exceptions import (
    ErrorContext,
    ErrorKind,
    FatalError,
    RetriableError,
    UserActionableError,
)
from repoweave.vendors import VendorHttpClient, http_status_error

# =============================================================================
# aiohttp doubles
# =============================================================================


def _response(status: int = 200, body: str = "") -> Mock:
    response = Mock()
    response.status = status
    response.text = AsyncMock(return_value=body)
    return response


class MockResponse:
    """Mock aiohttp response context manager."""

    def __init__(self, response: Mock | BaseException) -> None:
        self._response = response

    async def __aenter__(self) -> Mock:
        if isinstance(self._response, BaseException):
            raise self._response
        return self._response

    async def __aexit__(self, *args: Any) -> None:
        pass


class MockClientSession:
    """Mock aiohttp ClientSession answering GETs from a queue of responses."""

    def __init__(self, *responses: Mock | BaseException) -> None:
        self.responses = list(responses)
        self.get_calls: list[tuple[Any, ...]] = []
        self.init_kwargs: list[dict[str, Any]] = []

    def __call__(self, *args: Any, **kwargs: Any) -> MockClientSession:
        self.init_kwargs.append(kwargs)
        return self

    async def __aenter__(self) -> MockClientSession:
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass

    def get(self, *args: Any, **kwargs: Any) -> MockResponse:
        self.get_calls.append((args, kwargs))
        return MockResponse(self.responses.pop(0))


SESSION_TARGET = "repoweave.vendors.http.aiohttp.ClientSession"
CTX = ErrorContext(op="listRefs", remote="https://github.com/o/r.git")


# =============================================================================
# Status mapping
# =============================================================================


class TestHttpStatusError:
    """Tests for http_status_error."""

    @pytest.mark.parametrize(
        ("status", "kind", "cls"),
        [
            (401, ErrorKind.AUTH_REQUIRED, UserActionableError),
            (403, ErrorKind.AUTH_REQUIRED, UserActionableError),
            (404, ErrorKind.NOT_FOUND, UserActionableError),
            (429, ErrorKind.NETWORK, RetriableError),
            (500, ErrorKind.NETWORK, RetriableError),
            (503, ErrorKind.NETWORK, RetriableError),
            (418, ErrorKind.UNKNOWN, FatalError),
        ],
    )
    def test_mapping(self, status: int, kind: ErrorKind, cls: type) -> None:
        error = http_status_error(status, CTX)

        assert error.kind is kind
        assert isinstance(error, cls)
        assert f"HTTP {status}" in error.message
        assert error.message.endswith(CTX.render())


# =============================================================================
# Requests
# =============================================================================


class TestVendorHttpClient:
    """Tests for GET requests through aiohttp."""

    @pytest.mark.asyncio
    async def test_get_json(self) -> None:
        session = MockClientSession(_response(200, '[{"name": "main"}]'))

        with patch(SESSION_TARGET, session):
            data = await VendorHttpClient(timeout=3).get_json(
                "https://api.github.com/x", {"Accept": "application/json"}, context=CTX
            )

        assert data == [{"name": "main"}]
        args, kwargs = session.get_calls[0]
        assert args == ("https://api.github.com/x",)
        assert kwargs["headers"] == {"Accept": "application/json"}
        assert session.init_kwargs[0]["timeout"].total == 3

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self) -> None:
        with patch(SESSION_TARGET, MockClientSession(_response(200, ""))):
            assert await VendorHttpClient().get_json("https://x/y") is None

    @pytest.mark.asyncio
    async def test_get_text(self) -> None:
        with patch(SESSION_TARGET, MockClientSession(_response(200, "hello\n"))):
            assert await VendorHttpClient().get_text("https://x/raw") == "hello\n"

    @pytest.mark.asyncio
    async def test_invalid_json_is_unknown(self) -> None:
        with (
            patch(SESSION_TARGET, MockClientSession(_response(200, "<html>"))),
            pytest.raises(FatalError, match="Invalid JSON response"),
        ):
            await VendorHttpClient().get_json("https://x/y", context=CTX)

    @pytest.mark.asyncio
    async def test_not_found_status(self) -> None:
        with (
            patch(SESSION_TARGET, MockClientSession(_response(404))),
            pytest.raises(UserActionableError) as exc_info,
        ):
            await VendorHttpClient().get_json("https://x/y", context=CTX)

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_timeout_maps_to_timeout_kind(self) -> None:
        with (
            patch(SESSION_TARGET, MockClientSession(TimeoutError())),
            pytest.raises(RetriableError) as exc_info,
        ):
            await VendorHttpClient(timeout=1.5).get_json("https://x/y", context=CTX)

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert "1500ms" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_network(self) -> None:
        error = aiohttp.ClientConnectionError("refused")
        with (
            patch(SESSION_TARGET, MockClientSession(error)),
            pytest.raises(RetriableError) as exc_info,
        ):
            await VendorHttpClient().get_text("https://x/y", context=CTX)

        assert exc_info.value.kind is ErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_no_retries_by_default(self) -> None:
        session = MockClientSession(_response(503), _response(200, "[]"))

        with patch(SESSION_TARGET, session), pytest.raises(RetriableError):
            await VendorHttpClient().get_json("https://x/y")

        assert len(session.get_calls) == 1

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("repoweave.vendors.http.RETRY_BASE_DELAY", 0)
        session = MockClientSession(_response(503), _response(429), _response(200, "[]"))

        with patch(SESSION_TARGET, session):
            data = await VendorHttpClient(max_retries=2).get_json("https://x/y")

        assert data == []
        assert len(session.get_calls) == 3

    @pytest.mark.asyncio
    async def test_auth_errors_are_not_retried(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("repoweave.vendors.http.RETRY_BASE_DELAY", 0)
        session = MockClientSession(_response(401), _response(200, "[]"))

        with patch(SESSION_TARGET, session), pytest.raises(UserActionableError):
            await VendorHttpClient(max_retries=3).get_json("https://x/y")

        assert len(session.get_calls) == 1

    @pytest.mark.asyncio
    async def test_rate_limited_request(self) -> None:
        client = VendorHttpClient(rate_limit=10, rate_period=1)

        with patch(SESSION_TARGET, MockClientSession(_response(200, "{}"))):
            assert await client.get_json("https://x/y") == {}

        assert isinstance(client.rate_limiter, AsyncLimiter)

    def test_rate_limiting_disabled_by_default(self) -> None:
        assert VendorHttpClient().rate_limiter is None
