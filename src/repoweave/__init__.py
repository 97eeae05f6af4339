"""repoweave - multi-source repository data access.

Answers "what are this repository's branches, commits and files" from vendor
REST APIs first and a git engine second, and fans pushes out to every remote.
"""

from __future__ import annotations

__version__ = "0.1.0"

from repoweave.repository import RepositorySession  # noqa: E402

__all__ = ["RepositorySession", "__version__"]
