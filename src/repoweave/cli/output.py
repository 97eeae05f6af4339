"""Output formatting for repoweave CLI commands."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from rich.table import Table

from repoweave.engine import EngineCommit
from repoweave.exceptions import GitAccessError, RepoWeaveError
from repoweave.vendors import FileKind, VendorFileInfo, VendorRef, unix_to_iso

__all__ = [
    "commits_table",
    "error_suggestion",
    "files_table",
    "format_error",
    "format_json",
    "refs_table",
]

_SUGGESTIONS: dict[str, str] = {
    "auth_required": "Add a token for the host under 'tokens' in repoweave.yaml",
    "not_found": "Check the repository URL, branch and path",
    "network": "Check connectivity and retry",
    "timeout": "Retry, or raise vendor.timeout_seconds",
}


def format_error(
    message: str, details: list[str] | None = None, suggestion: str | None = None
) -> str:
    """Format an error message with optional details and suggestion.

    Example:
        >>> print(format_error("Not found", suggestion="Check the URL"))
        Error: Not found
        Suggestion: Check the URL
    """
    lines = [f"Error: {message}"]
    for detail in details or []:
        lines.append(f"  {detail}")
    if suggestion:
        lines.append(f"Suggestion: {suggestion}")
    return "\n".join(lines)


def error_suggestion(error: RepoWeaveError) -> str | None:
    """Suggestion matching the kind of *error*, if any."""
    if isinstance(error, GitAccessError):
        return _SUGGESTIONS.get(error.kind.value)
    return None


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def refs_table(refs: Sequence[VendorRef], title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Type")
    table.add_column("Name")
    table.add_column("Commit")
    for ref in refs:
        style = "green" if ref.type.value == "heads" else "yellow"
        table.add_row(
            f"[{style}]{ref.type.value}[/{style}]", ref.name, ref.commit_id[:12]
        )
    return table


def files_table(files: Sequence[VendorFileInfo], title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Type")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    for entry in sorted(files, key=lambda f: (not f.is_directory, f.path)):
        kind = "[blue]dir[/blue]" if entry.type == FileKind.DIRECTORY else "file"
        size = "" if entry.size is None else str(entry.size)
        table.add_row(kind, entry.path, size)
    return table


def commits_table(commits: Sequence[EngineCommit], title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Commit")
    table.add_column("Author")
    table.add_column("Date")
    table.add_column("Message")
    for commit in commits:
        summary = commit.message.splitlines()[0] if commit.message else ""
        table.add_row(
            commit.oid[:12],
            commit.author.name,
            unix_to_iso(commit.author.timestamp)[:10],
            summary,
        )
    return table
