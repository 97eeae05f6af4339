"""Source-agnostic results returned by the vendor read router.

Every vendor response, and every engine fallback, is normalised into these
shapes before it leaves the router. Commit dates are ISO-8601 strings here;
:func:`to_engine_commit` converts to the engine's unix-second shape.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum

from repoweave.engine.models import EngineCommit, EngineCommitPerson

__all__ = [
    "RefType",
    "FileKind",
    "VendorRef",
    "VendorFileInfo",
    "DirectoryListing",
    "FileContent",
    "CommitPerson",
    "VendorCommit",
    "CommitPage",
    "RefListing",
    "CommitCount",
    "VendorAttempt",
    "to_engine_commit",
    "from_engine_commit",
    "iso_to_unix",
    "unix_to_iso",
]


class RefType(str, Enum):
    HEADS = "heads"
    TAGS = "tags"


class FileKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


# =============================================================================
# Refs and files
# =============================================================================


@dataclass(frozen=True, slots=True)
class VendorRef:
    """A branch or tag, regardless of where it was listed.

    Attributes:
        name: Short name (``"main"``, ``"v1.0"``).
        type: Branch (``heads``) or tag (``tags``).
        full_ref: ``refs/heads/<name>`` or ``refs/tags/<name>``.
        commit_id: Commit the ref points at; empty if unknown.
    """

    name: str
    type: RefType
    full_ref: str
    commit_id: str = ""

    @classmethod
    def head(cls, name: str, commit_id: str = "") -> VendorRef:
        return cls(name, RefType.HEADS, f"refs/heads/{name}", commit_id)

    @classmethod
    def tag(cls, name: str, commit_id: str = "") -> VendorRef:
        return cls(name, RefType.TAGS, f"refs/tags/{name}", commit_id)

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


@dataclass(frozen=True, slots=True)
class VendorFileInfo:
    """One directory entry."""

    path: str
    type: FileKind = FileKind.FILE
    size: int | None = None
    mode: str | None = None
    oid: str | None = None

    @property
    def is_directory(self) -> bool:
        return self.type is FileKind.DIRECTORY


@dataclass(frozen=True, slots=True)
class DirectoryListing:
    """Result of ``list_directory``."""

    files: tuple[VendorFileInfo, ...]
    path: str
    ref: str
    from_vendor: bool
    from_cache: bool = False


@dataclass(frozen=True, slots=True)
class FileContent:
    """Result of ``get_file_content``."""

    content: str
    path: str
    ref: str
    from_vendor: bool
    encoding: str = "utf-8"
    from_cache: bool = False

    @property
    def size(self) -> int:
        return len(self.content)


# =============================================================================
# Commits
# =============================================================================


@dataclass(frozen=True, slots=True)
class CommitPerson:
    """Author or committer with an ISO-8601 date."""

    name: str = ""
    email: str = ""
    date: str = ""


@dataclass(frozen=True, slots=True)
class VendorCommit:
    """Normalised commit.

    Attributes:
        sha: Commit id.
        message: Full commit message.
        author: Author with ISO-8601 date.
        committer: Committer with ISO-8601 date.
        parents: Parent commit ids.
    """

    sha: str
    message: str = ""
    author: CommitPerson = field(default_factory=CommitPerson)
    committer: CommitPerson = field(default_factory=CommitPerson)
    parents: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CommitPage:
    """Result of ``list_commits``.

    ``has_more`` is the vendor's own paging hint; the engine fallback
    leaves it None.
    """

    commits: tuple[VendorCommit, ...]
    ref: str
    from_vendor: bool
    has_more: bool | None = None


@dataclass(frozen=True, slots=True)
class RefListing:
    """Result of ``list_refs``."""

    refs: tuple[VendorRef, ...]
    from_vendor: bool


@dataclass(frozen=True, slots=True)
class CommitCount:
    """Result of ``get_commit_count``.

    When a vendor is available the count is unknown and ``is_estimate`` is
    True: callers treat what they have loaded so far as the estimate.
    """

    success: bool
    count: int | None = None
    is_estimate: bool = False
    from_vendor: bool = False
    error: str | None = None


@dataclass(frozen=True, slots=True)
class VendorAttempt:
    """Diagnostic record of one vendor URL attempt."""

    url: str
    success: bool
    error: str | None = None


# =============================================================================
# Conversions
# =============================================================================


def iso_to_unix(value: str) -> int:
    """Convert an ISO-8601 timestamp to unix seconds (0 if empty or invalid)."""
    if not value:
        return 0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def unix_to_iso(timestamp: int) -> str:
    """Convert unix seconds to an ISO-8601 UTC string (``...Z``)."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def to_engine_commit(commit: VendorCommit) -> EngineCommit:
    """Translate a vendor commit into the engine's unix-second shape."""
    return EngineCommit(
        oid=commit.sha,
        message=commit.message,
        author=EngineCommitPerson(
            name=commit.author.name,
            email=commit.author.email,
            timestamp=iso_to_unix(commit.author.date),
        ),
        committer=EngineCommitPerson(
            name=commit.committer.name,
            email=commit.committer.email,
            timestamp=iso_to_unix(commit.committer.date),
        ),
        parents=commit.parents,
    )


def from_engine_commit(commit: EngineCommit) -> VendorCommit:
    """Translate an engine commit into the normalised vendor shape."""

    def person(p: EngineCommitPerson) -> CommitPerson:
        return CommitPerson(
            name=p.name,
            email=p.email,
            date=unix_to_iso(p.timestamp) if p.timestamp else "",
        )

    return VendorCommit(
        sha=commit.oid,
        message=commit.message,
        author=person(commit.author),
        committer=person(commit.committer),
        parents=commit.parents,
    )
