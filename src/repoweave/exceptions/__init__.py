"""repoweave exception hierarchy.

All exceptions can be imported from this package:
    from repoweave.exceptions import RetriableError, UserActionableError
"""

from __future__ import annotations

# Data-access errors
from repoweave.exceptions.access import (
    ErrorContext,
    ErrorKind,
    FatalError,
    GitAccessError,
    RetriableError,
    UserActionableError,
    auth_required_error,
    error_kind_of,
    make_error,
    network_error,
    not_found_error,
    timeout_error,
    unknown_error,
)

# Base exception
from repoweave.exceptions.base import RepoWeaveError

# Configuration exceptions
from repoweave.exceptions.config import ConfigError

# Credential exceptions
from repoweave.exceptions.credentials import (
    AllTokensFailedError,
    TokenError,
    TokenNotFoundError,
)

__all__ = [
    # Base
    "RepoWeaveError",
    # Access
    "ErrorContext",
    "ErrorKind",
    "FatalError",
    "GitAccessError",
    "RetriableError",
    "UserActionableError",
    "auth_required_error",
    "error_kind_of",
    "make_error",
    "network_error",
    "not_found_error",
    "timeout_error",
    "unknown_error",
    # Config
    "ConfigError",
    # Credentials
    "AllTokensFailedError",
    "TokenError",
    "TokenNotFoundError",
]
