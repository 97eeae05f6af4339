"""Command-line interface for repoweave."""
