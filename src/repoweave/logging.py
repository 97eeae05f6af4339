"""Structured logging configuration for repoweave.

This module provides structlog-based logging with:
- JSON output for services (when env var REPOWEAVE_LOG_FORMAT=json)
- Pretty console output for interactive use (default)
- Repository context binding (repo_id, branch) shared across async tasks

Usage:
    from repoweave.logging import get_logger, configure_logging

    configure_logging()

    log = get_logger(__name__)
    log = log.bind(repo_id="npub1.../my-repo")
    log.info("commit_page_loaded", branch="main", count=30)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog
from structlog.types import Processor

__all__ = [
    "get_logger",
    "configure_logging",
    "bind_repo_context",
    "clear_context",
]

# Environment variable for log format
LOG_FORMAT_ENV_VAR = "REPOWEAVE_LOG_FORMAT"

# Environment variable for log level
LOG_LEVEL_ENV_VAR = "REPOWEAVE_LOG_LEVEL"

DEFAULT_LOG_LEVEL = "INFO"

#: Third-party loggers that are noisy at INFO.
_NOISY_LOGGERS: tuple[str, ...] = ("aiohttp.access", "aiohttp.client", "asyncio")


def _get_log_level() -> int:
    """Get the log level from environment or default."""
    level_name = os.environ.get(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, level_name, logging.INFO)


def _is_json_output() -> bool:
    return os.environ.get(LOG_FORMAT_ENV_VAR, "").lower() == "json"


def _get_shared_processors() -> list[Processor]:
    """Get processors shared between stdlib and structlog."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _get_renderer(use_json: bool) -> Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    *,
    force_json: bool = False,
    level: int | None = None,
) -> None:
    """Configure structlog and stdlib logging for the process.

    Safe to call more than once; later calls replace the root handler.

    Args:
        force_json: Force JSON output regardless of environment variable.
        level: Override log level. If None, reads from REPOWEAVE_LOG_LEVEL.
    """
    use_json = force_json or _is_json_output()
    log_level = level if level is not None else _get_log_level()

    exc_processor: Processor = (
        structlog.processors.dict_tracebacks
        if use_json
        else structlog.processors.format_exc_info
    )

    structlog.configure(
        processors=[
            *_get_shared_processors(),
            exc_processor,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _get_renderer(use_json),
            ],
            foreign_pre_chain=_get_shared_processors(),
        )
    )
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name. If None, uses the caller's module name.

    Returns:
        A bound structlog logger.
    """
    log: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return log


def bind_repo_context(
    repo_id: str | None = None, branch: str | None = None, **context: Any
) -> None:
    """Bind repository context included in every subsequent log event.

    Uses structlog contextvars so the values follow the current asyncio task.

    Args:
        repo_id: Repository identifier.
        branch: Branch currently being worked on.
        **context: Extra key-value pairs.
    """
    if repo_id is not None:
        context["repo_id"] = repo_id
    if branch is not None:
        context["branch"] = branch
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
