"""Credential lookup exceptions."""

from __future__ import annotations

from repoweave.exceptions.access import ErrorKind, UserActionableError, error_kind_of


class TokenError(UserActionableError):
    """Base exception for credential lookups.

    Attributes:
        message: Human-readable error message.
        hostname: Host the credentials were looked up for.
    """

    def __init__(
        self,
        message: str,
        hostname: str | None = None,
        kind: ErrorKind = ErrorKind.AUTH_REQUIRED,
    ) -> None:
        self.hostname = hostname
        super().__init__(message, kind)


class TokenNotFoundError(TokenError):
    """No stored credential matches the host."""

    def __init__(self, hostname: str, operation: str | None = None) -> None:
        if operation:
            message = f"No tokens found for {operation} on {hostname}"
        else:
            message = f"No tokens found for host {hostname}"
        super().__init__(message, hostname)


class AllTokensFailedError(TokenError):
    """Every credential for the host was tried and failed.

    The error kind is inherited from the last collected error so that a
    ``NOT_FOUND`` behind valid credentials is not reported as an auth problem.

    Attributes:
        errors: The exceptions raised for each credential, in order.
    """

    def __init__(
        self,
        hostname: str,
        errors: list[BaseException],
        operation: str | None = None,
    ) -> None:
        self.errors = errors
        joined = "; ".join(f"Token {i + 1}: {e}" for i, e in enumerate(errors))
        if operation:
            message = f"All tokens failed for {operation} on {hostname}. Errors: {joined}"
        else:
            message = f"All tokens failed for host {hostname}. Errors: {joined}"
        kind = error_kind_of(errors[-1]) if errors else ErrorKind.AUTH_REQUIRED
        if kind is ErrorKind.UNKNOWN:
            kind = ErrorKind.AUTH_REQUIRED
        super().__init__(message, hostname, kind)
