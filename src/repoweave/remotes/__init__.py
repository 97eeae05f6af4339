"""Remote URL parsing, vendor detection and ref-name helpers."""

from __future__ import annotations

from repoweave.remotes.urls import (
    RemoteLocation,
    Vendor,
    detect_vendor,
    extract_hostname,
    filter_valid_remotes,
    is_credential_less,
    is_push_capable,
    normalize_repo_path,
    parse_remote_url,
    short_ref_name,
)

__all__ = [
    "RemoteLocation",
    "Vendor",
    "detect_vendor",
    "extract_hostname",
    "filter_valid_remotes",
    "is_credential_less",
    "is_push_capable",
    "normalize_repo_path",
    "parse_remote_url",
    "short_ref_name",
]
