"""Unit tests for the GitLab REST adapter."""

from __future__ import annotations

import pytest
from fakes import FakeVendorHttp

from repoweave.credentials import StaticCredentialStore, Token
from repoweave.exceptions import FatalError
from repoweave.vendors import FileKind, GitLabApi, RefType

REMOTE = "https://gitlab.com/group/sub/proj.git"
PROJECT = "https://gitlab.com/api/v4/projects/group%2Fsub%2Fproj"


def _api(http: FakeVendorHttp, *tokens: Token) -> GitLabApi:
    return GitLabApi(http, StaticCredentialStore(tokens))


class TestGitLabApi:
    """Tests for GitLab requests and response normalisation."""

    def test_self_hosted_api_base(self) -> None:
        assert _api(FakeVendorHttp()).api_base("gitlab.acme.corp") == (
            "https://gitlab.acme.corp/api/v4"
        )

    @pytest.mark.asyncio
    async def test_private_token_header(self) -> None:
        http = FakeVendorHttp({"/repository/tree": []})

        await _api(http, Token("gitlab.com", "glpat-1")).list_directory(REMOTE, "main", "")

        _, headers = http.calls[0]
        assert headers["PRIVATE-TOKEN"] == "glpat-1"
        assert "Authorization" not in headers

    @pytest.mark.asyncio
    async def test_list_directory(self) -> None:
        http = FakeVendorHttp(
            {
                "/repository/tree": [
                    {"path": "docs", "type": "tree", "mode": "040000", "id": "t1"},
                    {"path": "docs/a.md", "type": "blob", "mode": "100644", "id": "b1"},
                ]
            }
        )

        listing = await _api(http).list_directory(REMOTE, "main", "/docs")

        assert http.urls == [
            f"{PROJECT}/repository/tree?ref=main&path=docs&per_page=100"
        ]
        assert listing.files[0].type is FileKind.DIRECTORY
        assert listing.files[1].type is FileKind.FILE
        assert listing.files[1].mode == "100644"
        assert listing.files[1].oid == "b1"

    @pytest.mark.asyncio
    async def test_unexpected_tree_response(self) -> None:
        http = FakeVendorHttp({"/repository/tree": {"message": "404 Tree Not Found"}})

        with pytest.raises(FatalError, match="Unexpected GitLab tree response"):
            await _api(http).list_directory(REMOTE, "main", "")

    @pytest.mark.asyncio
    async def test_get_file_content_encodes_full_path(self) -> None:
        http = FakeVendorHttp({"/repository/files/": "raw text"})

        content = await _api(http).get_file_content(REMOTE, "dev", "/src/app.py")

        assert http.urls == [
            f"{PROJECT}/repository/files/src%2Fapp.py/raw?ref=dev"
        ]
        assert content.content == "raw text"
        assert content.path == "/src/app.py"
        assert content.ref == "dev"

    @pytest.mark.asyncio
    async def test_list_refs(self) -> None:
        http = FakeVendorHttp(
            {
                "/repository/branches": [{"name": "main", "commit": {"id": "aaa"}}],
                "/repository/tags": [{"name": "v1", "commit": {"id": "bbb"}}],
            }
        )

        refs = await _api(http).list_refs(REMOTE)

        assert [(r.name, r.type, r.commit_id) for r in refs] == [
            ("main", RefType.HEADS, "aaa"),
            ("v1", RefType.TAGS, "bbb"),
        ]

    @pytest.mark.asyncio
    async def test_list_commits(self) -> None:
        http = FakeVendorHttp(
            {
                "/repository/commits": [
                    {
                        "id": "c1",
                        "message": "fix",
                        "author_name": "Ada",
                        "author_email": "ada@example.com",
                        "authored_date": "2024-01-01T00:00:00Z",
                        "committer_name": "Bob",
                        "committer_email": "bob@example.com",
                        "committed_date": "2024-01-02T00:00:00Z",
                        "parent_ids": ["c0"],
                    }
                ]
            }
        )

        page = await _api(http).list_commits(REMOTE, "main", 1, 1)

        assert http.urls == [
            f"{PROJECT}/repository/commits?ref_name=main&page=1&per_page=1"
        ]
        commit = page.commits[0]
        assert commit.sha == "c1"
        assert commit.author.name == "Ada"
        assert commit.committer.name == "Bob"
        assert commit.parents == ("c0",)
        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_malformed_items_are_skipped(self) -> None:
        http = FakeVendorHttp(
            {
                "/repository/tree": [None, {"path": "README", "type": "blob"}],
                "/repository/commits": [
                    "c0",
                    {"id": "c1", "parent_ids": "c0"},
                    {"id": "c2", "parent_ids": [None, "c1"]},
                ],
            }
        )

        listing = await _api(http).list_directory(REMOTE, "main", "")
        page = await _api(http).list_commits(REMOTE, "main", 1, 30)

        assert [f.path for f in listing.files] == ["README"]
        assert [(c.sha, c.parents) for c in page.commits] == [
            ("c1", ()),
            ("c2", ("c1",)),
        ]
