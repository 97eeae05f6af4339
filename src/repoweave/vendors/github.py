"""GitHub-style REST adapters (GitHub, GitHub Enterprise, Gitea/Forgejo).

Gitea mirrors GitHub's ``/repos/{owner}/{repo}/...`` layout closely enough
to share the adapter; it differs in API root (``/api/v1``), page-size
parameter (``limit``) and where ref commit ids live.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from typing import Any, ClassVar
from urllib.parse import quote, urlencode

from repoweave.constants import VENDOR_LISTING_PAGE_SIZE
from repoweave.exceptions import ErrorContext, not_found_error, unknown_error
from repoweave.remotes import RemoteLocation, Vendor, normalize_repo_path
from repoweave.vendors.base import VendorApi, encode, record, records, ref_label
from repoweave.vendors.models import (
    CommitPage,
    CommitPerson,
    DirectoryListing,
    FileContent,
    FileKind,
    VendorCommit,
    VendorFileInfo,
    VendorRef,
)

__all__ = ["GitHubApi", "GiteaApi", "decode_base64_text"]


def decode_base64_text(data: str) -> str:
    """Decode base64 *data* (embedded newlines allowed) as UTF-8 text."""
    compact = "".join(data.split())
    try:
        raw = base64.b64decode(compact)
    except (binascii.Error, ValueError) as e:
        raise unknown_error(f"Invalid base64 content: {e}") from e
    return raw.decode("utf-8", errors="replace")


def _entry(item: dict[str, Any], fallback_path: str = "") -> VendorFileInfo:
    return VendorFileInfo(
        path=item.get("path") or item.get("name") or fallback_path,
        type=FileKind.DIRECTORY if item.get("type") == "dir" else FileKind.FILE,
        size=item.get("size"),
        oid=item.get("sha"),
    )


def _person(data: Any) -> CommitPerson:
    data = record(data)
    return CommitPerson(
        name=data.get("name") or "",
        email=data.get("email") or "",
        date=data.get("date") or "",
    )


def _commit(item: dict[str, Any]) -> VendorCommit:
    detail = record(item.get("commit"))
    return VendorCommit(
        sha=str(item.get("sha") or ""),
        message=str(detail.get("message") or ""),
        author=_person(detail.get("author")),
        committer=_person(detail.get("committer")),
        parents=tuple(str(p.get("sha") or "") for p in records(item.get("parents"))),
    )


class GitHubApi(VendorApi):
    """Adapter for github.com and GitHub Enterprise (``/api/v3``)."""

    vendor: ClassVar[Vendor] = Vendor.GITHUB
    #: Query parameter naming the page size.
    page_size_param: ClassVar[str] = "per_page"

    def api_base(self, host: str) -> str:
        h = host.strip()
        if h.lower() == "github.com":
            return "https://api.github.com"
        return f"https://{h}/api/v3"

    def auth_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"token {token}"}

    def repo_url(self, loc: RemoteLocation) -> str:
        return f"{self.api_base(loc.host)}/repos/{encode(loc.owner)}/{encode(loc.repo)}"

    def contents_url(self, loc: RemoteLocation, path: str, branch: str) -> str:
        clean = quote(normalize_repo_path(path), safe="/")
        return f"{self.repo_url(loc)}/contents/{clean}?{urlencode({'ref': branch})}"

    # Ref commit ids ---------------------------------------------------------

    def branch_commit_id(self, item: dict[str, Any]) -> str:
        return str(record(item.get("commit")).get("sha") or "")

    def tag_commit_id(self, item: dict[str, Any]) -> str:
        return str(record(item.get("commit")).get("sha") or "")

    # Operations -------------------------------------------------------------

    async def list_directory(
        self, remote_url: str, branch: str, path: str
    ) -> DirectoryListing:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listDirectory", remote=remote_url, branch=branch, path=path)
        data = await self.fetch_json(loc.host, self.contents_url(loc, path, branch), ctx)

        if isinstance(data, list):
            files = tuple(_entry(item) for item in records(data))
        elif isinstance(data, dict):
            # A file path is surfaced as a single-entry listing.
            files = (_entry(data, path),)
        else:
            raise unknown_error("Unexpected vendor directory response", context=ctx)

        return DirectoryListing(
            files=files, path=path or "/", ref=ref_label(branch), from_vendor=True
        )

    async def get_file_content(
        self, remote_url: str, branch: str, path: str
    ) -> FileContent:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="getFileContent", remote=remote_url, branch=branch, path=path)
        data = await self.fetch_json(loc.host, self.contents_url(loc, path, branch), ctx)

        if not isinstance(data, dict):
            raise unknown_error("Unexpected vendor file response", context=ctx)
        kind = data.get("type")
        if kind and kind != "file":
            raise not_found_error(
                f"Expected a file but got type='{kind}'", context=ctx
            )

        content = data.get("content")
        if not isinstance(content, str):
            raise unknown_error("Vendor did not return file content", context=ctx)
        if data.get("encoding") == "base64":
            content = decode_base64_text(content)

        return FileContent(
            content=content, path=path, ref=ref_label(branch), from_vendor=True
        )

    async def list_refs(self, remote_url: str) -> list[VendorRef]:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listRefs", remote=remote_url)
        paging = urlencode({self.page_size_param: VENDOR_LISTING_PAGE_SIZE})
        base = self.repo_url(loc)

        branches, tags = await asyncio.gather(
            self.fetch_json(loc.host, f"{base}/branches?{paging}", ctx),
            self.fetch_json(loc.host, f"{base}/tags?{paging}", ctx),
        )

        refs: list[VendorRef] = []
        for item in records(branches):
            if name := str(item.get("name") or ""):
                refs.append(VendorRef.head(name, self.branch_commit_id(item)))
        for item in records(tags):
            if name := str(item.get("name") or ""):
                refs.append(VendorRef.tag(name, self.tag_commit_id(item)))
        return refs

    async def list_commits(
        self, remote_url: str, branch: str, page: int, per_page: int
    ) -> CommitPage:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listCommits", remote=remote_url, branch=branch)
        query = urlencode(
            {"sha": branch, "page": page, self.page_size_param: per_page}
        )
        data = await self.fetch_json(
            loc.host, f"{self.repo_url(loc)}/commits?{query}", ctx
        )

        if not isinstance(data, list):
            raise unknown_error(
                f"Unexpected {self.vendor.value} commits response", context=ctx
            )

        commits = tuple(_commit(c) for c in records(data))
        return CommitPage(
            commits=commits,
            ref=ref_label(branch),
            from_vendor=True,
            has_more=len(data) == per_page,
        )


class GiteaApi(GitHubApi):
    """Adapter for Gitea and Forgejo (``/api/v1``)."""

    vendor: ClassVar[Vendor] = Vendor.GITEA
    page_size_param: ClassVar[str] = "limit"

    def api_base(self, host: str) -> str:
        return f"https://{host.strip()}/api/v1"

    def branch_commit_id(self, item: dict[str, Any]) -> str:
        commit = record(item.get("commit"))
        return str(commit.get("id") or commit.get("sha") or "")

    def tag_commit_id(self, item: dict[str, Any]) -> str:
        return str(item.get("id") or record(item.get("commit")).get("id") or "")
