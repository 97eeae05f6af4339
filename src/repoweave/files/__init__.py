"""Cached file listings and file contents."""

from __future__ import annotations

from repoweave.files.reader import FileReader, FileReaderStats

__all__ = ["FileReader", "FileReaderStats"]
