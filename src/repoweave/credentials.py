"""Host-scoped access tokens.

Token storage itself is an external collaborator; this module defines the
:class:`CredentialStore` contract it has to satisfy, an in-memory store fed
from configuration, and the host matching / retry-per-token helpers shared
by the vendor router and the push coordinator.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

from repoweave.exceptions import AllTokensFailedError, TokenNotFoundError
from repoweave.logging import get_logger

if TYPE_CHECKING:
    from repoweave.config import TokenConfig

__all__ = [
    "Token",
    "CredentialStore",
    "StaticCredentialStore",
    "matches_host",
    "get_tokens_for_host",
    "try_tokens_for_host",
]

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Token:
    """A stored access token.

    Attributes:
        host: Host the token was issued for (e.g. ``"github.com"``).
        token: Secret value. Excluded from ``repr``.
    """

    host: str
    token: str

    def __repr__(self) -> str:
        return f"Token(host={self.host!r}, token='***')"


@runtime_checkable
class CredentialStore(Protocol):
    """Source of stored tokens."""

    async def get_all_tokens(self) -> list[Token]:
        """Return every stored token."""
        ...


class StaticCredentialStore:
    """In-memory credential store.

    Args:
        tokens: Initial tokens.
    """

    def __init__(self, tokens: Iterable[Token] = ()) -> None:
        self._tokens: list[Token] = list(tokens)

    @classmethod
    def from_config(cls, tokens: Iterable[TokenConfig]) -> StaticCredentialStore:
        return cls(Token(host=t.host, token=t.token) for t in tokens)

    def add(self, token: Token) -> None:
        self._tokens.append(token)

    async def get_all_tokens(self) -> list[Token]:
        return list(self._tokens)


def matches_host(token_host: str, url_host: str) -> bool:
    """Check whether a token issued for *token_host* applies to *url_host*.

    Exact matches and subdomains match: ``github.com`` applies to
    ``api.github.com`` but not to ``gitlab.com``.
    """
    token_host = token_host.strip().lower()
    url_host = url_host.strip().lower()
    if not token_host or not url_host:
        return False
    return url_host == token_host or url_host.endswith("." + token_host)


def get_tokens_for_host(tokens: Iterable[Token], host: str) -> list[Token]:
    """Return the tokens matching *host*, in store order."""
    return [t for t in tokens if matches_host(t.host, host)]


async def try_tokens_for_host(
    tokens: Iterable[Token],
    host: str,
    operation: Callable[[str, str], Awaitable[T]],
    *,
    op_name: str | None = None,
) -> T:
    """Run *operation* with each token for *host* until one succeeds.

    Args:
        tokens: All stored tokens; only those matching *host* are tried.
        host: Hostname the operation targets.
        operation: Coroutine factory called as ``operation(token, token_host)``.
        op_name: Optional operation name used in error messages.

    Returns:
        The first successful result.

    Raises:
        TokenNotFoundError: If no token matches *host*.
        AllTokensFailedError: If every matching token failed.
    """
    matching = get_tokens_for_host(tokens, host)
    if not matching:
        raise TokenNotFoundError(host, op_name)

    errors: list[BaseException] = []
    for index, entry in enumerate(matching, start=1):
        try:
            return await operation(entry.token, entry.host)
        except Exception as e:
            logger.debug(
                "token_attempt_failed",
                host=host,
                attempt=index,
                of=len(matching),
                error=str(e),
            )
            errors.append(e)

    raise AllTokensFailedError(host, errors, op_name) from errors[-1]
