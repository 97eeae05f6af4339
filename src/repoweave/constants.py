"""repoweave constants.

Single source of truth for timeouts, page sizes, cache lifetimes and the
cache namespace names shared between components.
"""

from __future__ import annotations

# =============================================================================
# Vendor API
# =============================================================================

#: Default timeout for a single vendor HTTP request (seconds)
DEFAULT_VENDOR_TIMEOUT: float = 20.0

#: Page size requested when listing branches, tags and directory entries
VENDOR_LISTING_PAGE_SIZE: int = 100

# =============================================================================
# Commit history
# =============================================================================

DEFAULT_PAGE_SIZE: int = 30
MAX_PAGE_SIZE: int = 100

#: Minimum depth requested when deepening a shallow clone for history
DEFAULT_COMMIT_DEPTH: int = 100

# =============================================================================
# Cache namespaces and lifetimes
# =============================================================================

COMMIT_CACHE_NAME: str = "commit_history"
FILE_LISTING_CACHE_NAME: str = "file_listing"
FILE_CONTENT_CACHE_NAME: str = "file_content"

COMMIT_CACHE_TTL_SECONDS: float = 15 * 60.0
FILE_CONTENT_TTL_SECONDS: float = 10 * 60.0
FILE_LISTING_TTL_SECONDS: float = 5 * 60.0

#: Files larger than this are never written to the content cache (bytes)
MAX_CACHE_FILE_SIZE: int = 1024 * 1024

#: A listing that failed is not re-requested for this long (seconds)
FILE_LISTING_FAILURE_BACKOFF: float = 15.0

# =============================================================================
# Branches
# =============================================================================

#: Conventional default branch names, in order of preference
DEFAULT_BRANCH_NAMES: tuple[str, ...] = ("main", "master", "develop", "dev")

#: Branch used when nothing else can be resolved
ULTIMATE_FALLBACK_BRANCH: str = "master"

#: Minimum interval between overlapping ref reloads (seconds)
MIN_REF_RELOAD_INTERVAL: float = 2.0

#: Largest page a vendor API serves in one commit listing request
VENDOR_MAX_PER_PAGE: int = 100
