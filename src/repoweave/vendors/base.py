"""Common plumbing for the per-vendor REST adapters.

An adapter turns one clone URL into vendor-specific requests and normalises
the responses. Credentials are resolved per request: when stored tokens
match the host each one is tried in turn, otherwise the request goes out
unauthenticated so public repositories still work.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar
from urllib.parse import quote

from repoweave.credentials import (
    CredentialStore,
    Token,
    get_tokens_for_host,
    try_tokens_for_host,
)
from repoweave.exceptions import ErrorContext, RepoWeaveError
from repoweave.logging import get_logger
from repoweave.remotes import RemoteLocation, Vendor, parse_remote_url
from repoweave.vendors.http import VendorHttpClient
from repoweave.vendors.models import (
    CommitPage,
    DirectoryListing,
    FileContent,
    VendorRef,
)

__all__ = ["VendorApi", "encode", "record", "records", "ref_label"]

logger = get_logger(__name__)


def encode(value: str) -> str:
    """Percent-encode a single URL component (``/`` included)."""
    return quote(value, safe="")


def ref_label(branch: str) -> str:
    """Last path segment of *branch*, as reported in result ``ref`` fields."""
    return (branch or "").split("/")[-1]


def records(value: Any) -> list[dict[str, Any]]:
    """Object items of a JSON array. Non-arrays and non-object items are dropped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def record(value: Any) -> dict[str, Any]:
    """*value* if it is a JSON object, otherwise an empty one."""
    return value if isinstance(value, dict) else {}


class VendorApi(ABC):
    """Base class for a vendor REST adapter.

    Args:
        http: Transport used for every request.
        credentials: Store queried for host tokens on each request.
    """

    vendor: ClassVar[Vendor]

    def __init__(self, http: VendorHttpClient, credentials: CredentialStore) -> None:
        self.http = http
        self.credentials = credentials

    # -------------------------------------------------------------------------
    # Request shaping
    # -------------------------------------------------------------------------

    @abstractmethod
    def api_base(self, host: str) -> str:
        """API root for *host* (SaaS host or self-hosted path prefix)."""

    @abstractmethod
    def auth_headers(self, token: str) -> dict[str, str]:
        """Headers carrying *token* in this vendor's scheme."""

    def headers(self, token: str | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if token:
            headers.update(self.auth_headers(token))
        return headers

    @staticmethod
    def locate(remote_url: str) -> RemoteLocation:
        return parse_remote_url(remote_url)

    # -------------------------------------------------------------------------
    # Credential-aware fetches
    # -------------------------------------------------------------------------

    async def _tokens(self) -> list[Token]:
        try:
            return await self.credentials.get_all_tokens()
        except RepoWeaveError as e:
            logger.warning("credential_store_unavailable", error=e.message)
            return []

    async def fetch_json(self, host: str, url: str, context: ErrorContext) -> Any:
        """GET JSON, retrying once per stored token for *host*."""
        tokens = await self._tokens()
        if get_tokens_for_host(tokens, host):

            async def attempt(token: str, _token_host: str) -> Any:
                return await self.http.get_json(
                    url, self.headers(token), context=context
                )

            return await try_tokens_for_host(tokens, host, attempt, op_name=context.op)
        return await self.http.get_json(url, self.headers(None), context=context)

    async def fetch_text(self, host: str, url: str, context: ErrorContext) -> str:
        """GET text, retrying once per stored token for *host*."""
        tokens = await self._tokens()
        if get_tokens_for_host(tokens, host):

            async def attempt(token: str, _token_host: str) -> str:
                return await self.http.get_text(
                    url, self.headers(token), context=context
                )

            return await try_tokens_for_host(tokens, host, attempt, op_name=context.op)
        return await self.http.get_text(url, self.headers(None), context=context)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_directory(
        self, remote_url: str, branch: str, path: str
    ) -> DirectoryListing: ...

    @abstractmethod
    async def get_file_content(
        self, remote_url: str, branch: str, path: str
    ) -> FileContent: ...

    @abstractmethod
    async def list_refs(self, remote_url: str) -> list[VendorRef]: ...

    @abstractmethod
    async def list_commits(
        self, remote_url: str, branch: str, page: int, per_page: int
    ) -> CommitPage: ...
