"""Remote URL classification and parsing.

Everything here is a pure function of the URL string. Vendor detection
looks at the hostname only; what a repository announcement claims about
its provider is ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from repoweave.exceptions import ErrorContext, unknown_error

__all__ = [
    "Vendor",
    "RemoteLocation",
    "parse_remote_url",
    "detect_vendor",
    "filter_valid_remotes",
    "is_push_capable",
    "is_credential_less",
    "extract_hostname",
    "short_ref_name",
    "normalize_repo_path",
]


class Vendor(str, Enum):
    """Hosting vendors with a supported REST API."""

    GITHUB = "github"
    GITLAB = "gitlab"
    GITEA = "gitea"
    BITBUCKET = "bitbucket"


#: Schemes (or scp-style prefix) that git can push to.
_PUSH_CAPABLE_RE = re.compile(r"^(?:https?://|wss?://|ssh://|git@)", re.IGNORECASE)

#: scp-style ``git@host:owner/repo.git``
_SCP_RE = re.compile(r"^git@([^:/]+):(.+)$")

#: Last-resort ``scheme://host/owner/repo`` matcher.
_GENERIC_RE = re.compile(
    r"^(?:https?://|ssh://git@)([^/:]+)[/:]([^/]+)/([^/.]+)(?:\.git)?",
    re.IGNORECASE,
)

#: Hosts known to run Gitea/Forgejo under a name that does not say so.
_KNOWN_GITEA_HOSTS = frozenset({"codeberg.org", "gitea.com"})


@dataclass(frozen=True, slots=True)
class RemoteLocation:
    """Host and repository path parsed from a clone URL.

    Attributes:
        host: Hostname without port or credentials.
        owner: Owner path; may contain ``/`` for nested groups.
        repo: Repository name without ``.git``.
    """

    host: str
    owner: str
    repo: str

    @property
    def project_path(self) -> str:
        return f"{self.owner}/{self.repo}"


def _strip_git_suffix(name: str) -> str:
    return re.sub(r"\.git$", "", name, flags=re.IGNORECASE)


def _split_path(host: str, path: str) -> RemoteLocation | None:
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return None
    return RemoteLocation(
        host=host, owner="/".join(parts[:-1]), repo=_strip_git_suffix(parts[-1])
    )


def parse_remote_url(url: str) -> RemoteLocation:
    """Parse a clone URL into host, owner and repository name.

    Supports ``https://host/owner/repo.git``, ``ssh://git@host/owner/repo``,
    ``git@host:owner/repo.git`` and multi-segment owners
    (``https://gitlab.com/group/sub/repo``).

    Raises:
        FatalError: If the URL cannot be parsed.
    """
    raw = (url or "").strip()

    try:
        parts = urlsplit(raw)
    except ValueError:
        parts = None
    if parts is not None and parts.scheme and parts.hostname:
        location = _split_path(parts.hostname, parts.path)
        if location is not None:
            return location

    match = _SCP_RE.match(raw)
    if match:
        location = _split_path(match.group(1), match.group(2).lstrip("/"))
        if location is not None:
            return location

    match = _GENERIC_RE.match(raw)
    if match:
        return RemoteLocation(
            host=match.group(1), owner=match.group(2), repo=match.group(3)
        )

    raise unknown_error(
        f"Unable to parse clone URL: {raw}",
        context=ErrorContext(op="parseRemoteUrl", remote=raw or None),
    )


def extract_hostname(url: str) -> str | None:
    """Return the lower-cased hostname of *url*, or None if it has none."""
    raw = (url or "").strip()
    match = _SCP_RE.match(raw)
    if match:
        return match.group(1).lower()
    try:
        host = urlsplit(raw).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def is_push_capable(url: str) -> bool:
    """True for https/http, ssh, scp-style and ws(s) remotes."""
    return bool(_PUSH_CAPABLE_RE.match((url or "").strip()))


def is_credential_less(url: str) -> bool:
    """True for relay-style remotes that never take a host token."""
    return (url or "").strip().lower().startswith(("ws://", "wss://"))


def filter_valid_remotes(urls: list[str] | tuple[str, ...]) -> list[str]:
    """Strip empty, duplicate and address-only entries, keeping order."""
    seen: set[str] = set()
    valid: list[str] = []
    for url in urls:
        candidate = (url or "").strip()
        if not candidate or candidate in seen:
            continue
        if not is_push_capable(candidate):
            continue
        seen.add(candidate)
        valid.append(candidate)
    return valid


def detect_vendor(url: str) -> Vendor | None:
    """Detect the hosting vendor of *url* from its hostname.

    Relay (``ws``/``wss``) URLs and unknown hosts return None.
    """
    if not is_push_capable(url) or is_credential_less(url):
        return None
    host = extract_hostname(url)
    if not host:
        return None

    labels = host.split(".")
    if host == "github.com" or host.endswith(".github.com") or "github" in labels:
        return Vendor.GITHUB
    if host in _KNOWN_GITEA_HOSTS or any(
        label in ("gitea", "forgejo") for label in labels
    ):
        return Vendor.GITEA
    if "gitlab" in labels or host.endswith(".gitlab.com"):
        return Vendor.GITLAB
    if "bitbucket" in labels:
        return Vendor.BITBUCKET
    return None


def short_ref_name(ref: str) -> str:
    """Reduce a ref to its git short name.

    ``refs/heads/feature/x`` -> ``feature/x``; ``refs/tags/v1`` -> ``v1``.
    Names without a ``refs/`` prefix are returned unchanged.
    """
    name = (ref or "").strip()
    for prefix in ("refs/heads/", "refs/tags/"):
        if name.startswith(prefix):
            return name[len(prefix) :]
    if name.startswith("refs/remotes/"):
        return name.split("/", 3)[-1]
    return name


def normalize_repo_path(path: str | None) -> str:
    """Strip a single leading ``/`` from a repository path."""
    p = path or ""
    return p[1:] if p.startswith("/") else p
