"""Bitbucket REST adapter (bitbucket.org and self-hosted ``/api/2.0``).

Bitbucket wraps listings in a ``{"values": [...], "next": ...}`` envelope
and serves raw file bytes from the same ``src`` endpoint used for
directory listings.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, ClassVar
from urllib.parse import quote, urlencode

from repoweave.constants import VENDOR_LISTING_PAGE_SIZE
from repoweave.exceptions import ErrorContext, unknown_error
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

__all__ = ["BitbucketApi", "parse_raw_author"]

_RAW_EMAIL_RE = re.compile(r"<(.+)>")


def parse_raw_author(raw: str) -> tuple[str, str]:
    """Split ``"Name <email>"`` into ``(name, email)``."""
    name = raw.split("<")[0].strip()
    match = _RAW_EMAIL_RE.search(raw)
    return name, match.group(1) if match else ""


def _values(data: Any) -> list[dict[str, Any]]:
    return records(record(data).get("values"))


def _author(commit: dict[str, Any]) -> CommitPerson:
    author = record(commit.get("author"))
    user = record(author.get("user"))
    raw_name, raw_email = parse_raw_author(str(author.get("raw") or ""))
    return CommitPerson(
        name=user.get("display_name") or raw_name,
        email=user.get("email") or raw_email,
        date=commit.get("date") or "",
    )


class BitbucketApi(VendorApi):
    vendor: ClassVar[Vendor] = Vendor.BITBUCKET

    def api_base(self, host: str) -> str:
        h = host.strip()
        if h.lower() == "bitbucket.org":
            return "https://api.bitbucket.org/2.0"
        return f"https://{h}/api/2.0"

    def auth_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def repo_url(self, loc: RemoteLocation) -> str:
        return (
            f"{self.api_base(loc.host)}/repositories/"
            f"{encode(loc.owner)}/{encode(loc.repo)}"
        )

    def src_url(self, loc: RemoteLocation, branch: str, path: str) -> str:
        clean = quote(normalize_repo_path(path), safe="/")
        return f"{self.repo_url(loc)}/src/{encode(branch)}/{clean}"

    async def list_directory(
        self, remote_url: str, branch: str, path: str
    ) -> DirectoryListing:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listDirectory", remote=remote_url, branch=branch, path=path)
        url = f"{self.src_url(loc, branch, path)}?{urlencode({'pagelen': VENDOR_LISTING_PAGE_SIZE})}"
        data = await self.fetch_json(loc.host, url, ctx)
        if not isinstance(data, dict):
            raise unknown_error("Unexpected Bitbucket directory response", context=ctx)

        files = tuple(
            VendorFileInfo(
                path=item.get("path") or "",
                type=(
                    FileKind.DIRECTORY
                    if item.get("type") == "commit_directory"
                    else FileKind.FILE
                ),
                size=item.get("size"),
                oid=record(item.get("commit")).get("hash"),
            )
            for item in _values(data)
        )
        return DirectoryListing(
            files=files, path=path or "/", ref=ref_label(branch), from_vendor=True
        )

    async def get_file_content(
        self, remote_url: str, branch: str, path: str
    ) -> FileContent:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="getFileContent", remote=remote_url, branch=branch, path=path)
        content = await self.fetch_text(loc.host, self.src_url(loc, branch, path), ctx)
        return FileContent(
            content=content, path=path, ref=ref_label(branch), from_vendor=True
        )

    async def list_refs(self, remote_url: str) -> list[VendorRef]:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listRefs", remote=remote_url)
        paging = urlencode({"pagelen": VENDOR_LISTING_PAGE_SIZE})
        base = f"{self.repo_url(loc)}/refs"

        branches, tags = await asyncio.gather(
            self.fetch_json(loc.host, f"{base}/branches?{paging}", ctx),
            self.fetch_json(loc.host, f"{base}/tags?{paging}", ctx),
        )

        refs: list[VendorRef] = []
        for item in _values(branches):
            if name := str(item.get("name") or ""):
                refs.append(
                    VendorRef.head(name, str(record(item.get("target")).get("hash") or ""))
                )
        for item in _values(tags):
            if name := str(item.get("name") or ""):
                refs.append(
                    VendorRef.tag(name, str(record(item.get("target")).get("hash") or ""))
                )
        return refs

    async def list_commits(
        self, remote_url: str, branch: str, page: int, per_page: int
    ) -> CommitPage:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listCommits", remote=remote_url, branch=branch)
        query = urlencode({"include": branch, "pagelen": per_page, "page": page})
        data = await self.fetch_json(loc.host, f"{self.repo_url(loc)}/commits?{query}", ctx)
        if not isinstance(data, dict):
            raise unknown_error("Unexpected Bitbucket commits response", context=ctx)

        commits: list[VendorCommit] = []
        for c in _values(data):
            person = _author(c)
            commits.append(
                VendorCommit(
                    sha=c.get("hash") or "",
                    message=c.get("message") or "",
                    author=person,
                    committer=person,
                    parents=tuple(
                        str(p.get("hash") or "") for p in records(c.get("parents"))
                    ),
                )
            )
        return CommitPage(
            commits=tuple(commits),
            ref=ref_label(branch),
            from_vendor=True,
            has_more=bool(data.get("next")),
        )
