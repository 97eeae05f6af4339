"""GitLab REST adapter (gitlab.com and self-hosted ``/api/v4``).

Projects are addressed by their URL-encoded ``group/subgroup/repo`` path,
so nested groups need no extra lookup.
"""

from __future__ import annotations

import asyncio
from typing import Any, ClassVar
from urllib.parse import urlencode

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

__all__ = ["GitLabApi"]


def _ref_commit_id(item: dict[str, Any]) -> str:
    commit = record(item.get("commit"))
    return str(commit.get("id") or commit.get("sha") or "")


def _parent_ids(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(p for p in value if isinstance(p, str))


class GitLabApi(VendorApi):
    vendor: ClassVar[Vendor] = Vendor.GITLAB

    def api_base(self, host: str) -> str:
        return f"https://{host.strip()}/api/v4"

    def auth_headers(self, token: str) -> dict[str, str]:
        return {"PRIVATE-TOKEN": token}

    def project_url(self, loc: RemoteLocation) -> str:
        return f"{self.api_base(loc.host)}/projects/{encode(loc.project_path)}"

    async def list_directory(
        self, remote_url: str, branch: str, path: str
    ) -> DirectoryListing:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listDirectory", remote=remote_url, branch=branch, path=path)
        query = urlencode(
            {
                "ref": branch,
                "path": normalize_repo_path(path),
                "per_page": VENDOR_LISTING_PAGE_SIZE,
            }
        )
        data = await self.fetch_json(
            loc.host, f"{self.project_url(loc)}/repository/tree?{query}", ctx
        )
        if not isinstance(data, list):
            raise unknown_error("Unexpected GitLab tree response", context=ctx)

        files = tuple(
            VendorFileInfo(
                path=item.get("path") or item.get("name") or "",
                type=FileKind.DIRECTORY if item.get("type") == "tree" else FileKind.FILE,
                mode=item.get("mode"),
                oid=item.get("id"),
            )
            for item in records(data)
        )
        return DirectoryListing(
            files=files, path=path or "/", ref=ref_label(branch), from_vendor=True
        )

    async def get_file_content(
        self, remote_url: str, branch: str, path: str
    ) -> FileContent:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="getFileContent", remote=remote_url, branch=branch, path=path)
        file_path = encode(normalize_repo_path(path))
        url = (
            f"{self.project_url(loc)}/repository/files/{file_path}/raw"
            f"?{urlencode({'ref': branch})}"
        )
        content = await self.fetch_text(loc.host, url, ctx)
        return FileContent(
            content=content, path=path, ref=ref_label(branch), from_vendor=True
        )

    async def list_refs(self, remote_url: str) -> list[VendorRef]:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listRefs", remote=remote_url)
        paging = urlencode({"per_page": VENDOR_LISTING_PAGE_SIZE})
        base = f"{self.project_url(loc)}/repository"

        branches, tags = await asyncio.gather(
            self.fetch_json(loc.host, f"{base}/branches?{paging}", ctx),
            self.fetch_json(loc.host, f"{base}/tags?{paging}", ctx),
        )

        refs: list[VendorRef] = []
        for item in records(branches):
            if name := str(item.get("name") or ""):
                refs.append(VendorRef.head(name, _ref_commit_id(item)))
        for item in records(tags):
            if name := str(item.get("name") or ""):
                refs.append(VendorRef.tag(name, _ref_commit_id(item)))
        return refs

    async def list_commits(
        self, remote_url: str, branch: str, page: int, per_page: int
    ) -> CommitPage:
        loc = self.locate(remote_url)
        ctx = ErrorContext(op="listCommits", remote=remote_url, branch=branch)
        query = urlencode({"ref_name": branch, "page": page, "per_page": per_page})
        data = await self.fetch_json(
            loc.host, f"{self.project_url(loc)}/repository/commits?{query}", ctx
        )
        if not isinstance(data, list):
            raise unknown_error("Unexpected GitLab commits response", context=ctx)

        commits = tuple(
            VendorCommit(
                sha=c.get("id") or "",
                message=c.get("message") or "",
                author=CommitPerson(
                    name=c.get("author_name") or "",
                    email=c.get("author_email") or "",
                    date=c.get("authored_date") or "",
                ),
                committer=CommitPerson(
                    name=c.get("committer_name") or "",
                    email=c.get("committer_email") or "",
                    date=c.get("committed_date") or "",
                ),
                parents=_parent_ids(c.get("parent_ids")),
            )
            for c in records(data)
        )
        return CommitPage(
            commits=commits,
            ref=ref_label(branch),
            from_vendor=True,
            has_more=len(data) == per_page,
        )
