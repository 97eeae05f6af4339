"""Typed errors for repository data access.

Every failure raised by the vendor router, the commit loader and the
coordinators carries an :class:`ErrorKind` describing *what* went wrong and
is an instance of one of three propagation classes describing *what the
caller should do about it*:

- :class:`RetriableError`: the whole operation may simply be retried.
- :class:`UserActionableError`: a person has to intervene (credentials,
  missing remote, permission denied).
- :class:`FatalError`: programmer or configuration error.

Messages carry the operation context (``op``, ``remote``, ``branch``,
``path``) so a single log line is enough to diagnose the failing call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from repoweave.exceptions.base import RepoWeaveError


class ErrorKind(str, Enum):
    """What went wrong, independent of how the caller should react."""

    AUTH_REQUIRED = "auth_required"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Operation context appended to error messages.

    Attributes:
        op: Operation name (e.g. ``"listCommits"``).
        remote: Remote URL involved, if any.
        branch: Branch or ref involved, if any.
        path: Repository path involved, if any.
    """

    op: str
    remote: str | None = None
    branch: str | None = None
    path: str | None = None

    def render(self) -> str:
        """Render as `` (op=..., remote=..., branch=..., path=...)``."""
        parts = [f"op={self.op}"]
        if self.remote:
            parts.append(f"remote={self.remote}")
        if self.branch:
            parts.append(f"branch={self.branch}")
        if self.path:
            parts.append(f"path={self.path}")
        return f" ({', '.join(parts)})"

    def __str__(self) -> str:
        return self.render()


class GitAccessError(RepoWeaveError):
    """Base class for typed data-access failures.

    Attributes:
        message: Human-readable message, already including the context suffix.
        kind: The :class:`ErrorKind` of the failure.
        context: Optional :class:`ErrorContext` of the failing operation.
        details: Optional structured payload (e.g. per-remote push results).
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        *,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.kind = kind
        self.context = context
        self.details = details or {}
        if context is not None and not message.endswith(context.render()):
            message = f"{message}{context.render()}"
        super().__init__(message)

    @property
    def retriable(self) -> bool:
        """True if the caller may retry the whole operation."""
        return isinstance(self, RetriableError)


class RetriableError(GitAccessError):
    """Transient failure; retrying the whole operation may succeed."""


class UserActionableError(GitAccessError):
    """Failure that requires user intervention before retrying."""


class FatalError(GitAccessError):
    """Programmer or configuration error; retrying will not help."""


#: Propagation class used for each error kind.
KIND_TO_CLASS: dict[ErrorKind, type[GitAccessError]] = {
    ErrorKind.AUTH_REQUIRED: UserActionableError,
    ErrorKind.NOT_FOUND: UserActionableError,
    ErrorKind.NETWORK: RetriableError,
    ErrorKind.TIMEOUT: RetriableError,
    ErrorKind.UNKNOWN: FatalError,
}


def make_error(
    kind: ErrorKind,
    message: str,
    *,
    context: ErrorContext | None = None,
    details: dict[str, Any] | None = None,
) -> GitAccessError:
    """Create an error of the propagation class matching *kind*."""
    cls = KIND_TO_CLASS[kind]
    return cls(message, kind, context=context, details=details)


def auth_required_error(
    message: str = "Authentication required", *, context: ErrorContext | None = None
) -> GitAccessError:
    return make_error(ErrorKind.AUTH_REQUIRED, message, context=context)


def not_found_error(
    message: str = "Not found", *, context: ErrorContext | None = None
) -> GitAccessError:
    return make_error(ErrorKind.NOT_FOUND, message, context=context)


def network_error(
    message: str = "Network error", *, context: ErrorContext | None = None
) -> GitAccessError:
    return make_error(ErrorKind.NETWORK, message, context=context)


def timeout_error(
    message: str = "Request timed out", *, context: ErrorContext | None = None
) -> GitAccessError:
    return make_error(ErrorKind.TIMEOUT, message, context=context)


def unknown_error(
    message: str = "Unknown error", *, context: ErrorContext | None = None
) -> GitAccessError:
    return make_error(ErrorKind.UNKNOWN, message, context=context)


def error_kind_of(exc: BaseException) -> ErrorKind:
    """Return the :class:`ErrorKind` of *exc*, ``UNKNOWN`` for foreign errors."""
    if isinstance(exc, GitAccessError):
        return exc.kind
    return ErrorKind.UNKNOWN
