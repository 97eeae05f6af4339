"""Vendor REST adapters and the vendor-first read router.

Usage:
    ```python
    from repoweave.vendors import VendorReadRouter

    router = VendorReadRouter(credentials)
    listing = await router.list_directory(engine, repo, "main", "src")
    ```
"""

from __future__ import annotations

from repoweave.vendors.base import VendorApi
from repoweave.vendors.bitbucket import BitbucketApi
from repoweave.vendors.github import GiteaApi, GitHubApi
from repoweave.vendors.gitlab import GitLabApi
from repoweave.vendors.http import VendorHttpClient, http_status_error
from repoweave.vendors.models import (
    CommitCount,
    CommitPage,
    CommitPerson,
    DirectoryListing,
    FileContent,
    FileKind,
    RefListing,
    RefType,
    VendorAttempt,
    VendorCommit,
    VendorFileInfo,
    VendorRef,
    from_engine_commit,
    iso_to_unix,
    to_engine_commit,
    unix_to_iso,
)
from repoweave.vendors.router import VendorReadRouter

__all__ = [
    "BitbucketApi",
    "CommitCount",
    "CommitPage",
    "CommitPerson",
    "DirectoryListing",
    "FileContent",
    "FileKind",
    "GitHubApi",
    "GitLabApi",
    "GiteaApi",
    "RefListing",
    "RefType",
    "VendorApi",
    "VendorAttempt",
    "VendorCommit",
    "VendorFileInfo",
    "VendorHttpClient",
    "VendorReadRouter",
    "VendorRef",
    "from_engine_commit",
    "http_status_error",
    "iso_to_unix",
    "to_engine_commit",
    "unix_to_iso",
]
