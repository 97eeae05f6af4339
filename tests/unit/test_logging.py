"""Tests for the repoweave.logging module."""

from __future__ import annotations

import logging
import os
from unittest.mock import patch

import structlog

from repoweave.logging import (
    bind_repo_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_default(self) -> None:
        """Test default logging configuration (console output)."""
        configure_logging()

        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1

    def test_configure_logging_json_via_env(self) -> None:
        """Test JSON logging when REPOWEAVE_LOG_FORMAT=json."""
        with patch.dict(os.environ, {"REPOWEAVE_LOG_FORMAT": "json"}):
            configure_logging()

            log = get_logger("test.json")
            log.info("json_event", key="value")

    def test_configure_logging_custom_level(self) -> None:
        """Test setting custom log level."""
        configure_logging(level=logging.DEBUG)

        assert logging.getLogger().level == logging.DEBUG

    def test_configure_logging_level_from_env(self) -> None:
        """Test log level from REPOWEAVE_LOG_LEVEL env var."""
        with patch.dict(os.environ, {"REPOWEAVE_LOG_LEVEL": "ERROR"}):
            configure_logging()

            assert logging.getLogger().level == logging.ERROR

    def test_repeated_configuration_keeps_one_handler(self) -> None:
        configure_logging()
        configure_logging(force_json=True)

        assert len(logging.getLogger().handlers) == 1

    def test_noisy_loggers_raised_to_warning(self) -> None:
        configure_logging(level=logging.DEBUG)

        assert logging.getLogger("aiohttp.client").level == logging.WARNING


class TestContextBinding:
    """Tests for repository context binding."""

    def test_bind_repo_context(self) -> None:
        """Test binding repository context variables."""
        configure_logging()
        clear_context()

        bind_repo_context(repo_id="npub1abc/hello", branch="main", page=2)

        ctx = structlog.contextvars.get_contextvars()
        assert ctx["repo_id"] == "npub1abc/hello"
        assert ctx["branch"] == "main"
        assert ctx["page"] == 2
        clear_context()

    def test_none_values_are_not_bound(self) -> None:
        clear_context()

        bind_repo_context(repo_id="npub1abc/hello")

        ctx = structlog.contextvars.get_contextvars()
        assert "branch" not in ctx
        clear_context()

    def test_clear_context(self) -> None:
        """Test clearing context variables."""
        bind_repo_context(repo_id="npub1abc/hello")
        clear_context()

        assert structlog.contextvars.get_contextvars() == {}

    def test_logger_with_structured_data(self) -> None:
        """Test logging with bound context and structured data."""
        configure_logging()

        log = get_logger("test").bind(repo_id="npub1abc/hello")

        # Should not raise
        log.info("commit_page_loaded", branch="main", count=30)
        log.warning("vendor_attempt_failed", error="HTTP 404")
