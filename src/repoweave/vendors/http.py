"""HTTP transport for vendor REST calls.

Every request is bounded by a timeout. Failures are mapped onto the
:class:`~repoweave.exceptions.ErrorKind` taxonomy:

- timeout expiry -> ``TIMEOUT``
- connection / DNS failure -> ``NETWORK``
- HTTP 401/403 -> ``AUTH_REQUIRED``, 404 -> ``NOT_FOUND``,
  429 and 5xx -> ``NETWORK``, any other non-2xx -> ``UNKNOWN``
- an unparseable JSON body -> ``UNKNOWN``

Rate limiting (aiolimiter) and transient retries (tenacity) are both
optional and disabled by default.
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from repoweave.constants import DEFAULT_VENDOR_TIMEOUT
from repoweave.exceptions import (
    ErrorContext,
    ErrorKind,
    GitAccessError,
    auth_required_error,
    network_error,
    not_found_error,
    timeout_error,
    unknown_error,
)
from repoweave.logging import get_logger

__all__ = ["VendorHttpClient", "http_status_error", "RETRY_BASE_DELAY"]

logger = get_logger(__name__)

#: Base delay for exponential backoff between transient retries (seconds)
RETRY_BASE_DELAY: float = 0.5

#: Default rate-limit window (seconds)
DEFAULT_RATE_PERIOD: float = 60.0


def http_status_error(status: int, context: ErrorContext | None) -> GitAccessError:
    """Map a non-2xx HTTP status to a typed error."""
    if status in (401, 403):
        return auth_required_error(
            f"Vendor authentication required (HTTP {status})", context=context
        )
    if status == 404:
        return not_found_error("Not found (HTTP 404)", context=context)
    if status == 429 or 500 <= status <= 599:
        return network_error(f"Vendor service error (HTTP {status})", context=context)
    return unknown_error(f"Vendor request failed (HTTP {status})", context=context)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, GitAccessError) and exc.kind is ErrorKind.NETWORK


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "vendor_request_retrying",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


class VendorHttpClient:
    """GET-only HTTP client used by the vendor API adapters.

    Args:
        timeout: Per-request timeout in seconds.
        max_retries: Extra attempts for ``NETWORK`` failures (429/5xx,
            connection errors). Timeouts are never retried here.
        rate_limit: Optional maximum requests per ``rate_period``.
        rate_period: Rate-limit window in seconds.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_VENDOR_TIMEOUT,
        max_retries: int = 0,
        rate_limit: int | None = None,
        rate_period: float | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        if rate_limit is not None:
            period = rate_period if rate_period is not None else DEFAULT_RATE_PERIOD
            self._rate_limiter: AsyncLimiter | None = AsyncLimiter(rate_limit, period)
        else:
            self._rate_limiter = None

    @property
    def rate_limiter(self) -> AsyncLimiter | None:
        return self._rate_limiter

    async def get_json(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        *,
        context: ErrorContext | None = None,
    ) -> Any:
        """GET *url* and decode the body as JSON (None for an empty body).

        Raises:
            GitAccessError: Typed failure (see module docstring).
        """
        text = await self._get_with_retry(url, headers or {}, context)
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise unknown_error("Invalid JSON response", context=context) from e

    async def get_text(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        *,
        context: ErrorContext | None = None,
    ) -> str:
        """GET *url* and return the body as text."""
        return await self._get_with_retry(url, headers or {}, context)

    async def _get_with_retry(
        self, url: str, headers: dict[str, str], context: ErrorContext | None
    ) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=RETRY_BASE_DELAY, min=RETRY_BASE_DELAY, max=4
            ),
            retry=retry_if_exception(_is_transient),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(self._rate_limited_get, url, headers, context)

    async def _rate_limited_get(
        self, url: str, headers: dict[str, str], context: ErrorContext | None
    ) -> str:
        if self._rate_limiter is not None:
            async with self._rate_limiter:
                return await self._get(url, headers, context)
        return await self._get(url, headers, context)

    async def _get(
        self, url: str, headers: dict[str, str], context: ErrorContext | None
    ) -> str:
        logger.debug("vendor_request", url=url)
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(url, headers=headers) as resp,
            ):
                if not 200 <= resp.status < 300:
                    raise http_status_error(resp.status, context)
                return await resp.text()
        except TimeoutError:
            raise timeout_error(
                f"Vendor request timed out after {int(self.timeout * 1000)}ms",
                context=context,
            ) from None
        except aiohttp.ClientError as e:
            raise network_error("Vendor network error", context=context) from e
