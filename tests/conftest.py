from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Generator, Iterator
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from fakes import FakeVendorHttp, make_engine

from repoweave.engine import RepoAnnouncement

if TYPE_CHECKING:
    from click.testing import CliRunner


@pytest.fixture(autouse=True)
def configure_test_logging() -> Generator[None, None, None]:
    """Configure structlog for the test environment.

    Runs for every test so log output goes to stderr at WARNING level and
    never mixes with command stdout.
    """
    from repoweave.logging import configure_logging

    configure_logging(level=logging.WARNING)
    yield


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory and restore the working directory afterwards."""
    original_cwd = os.getcwd()
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
    os.chdir(original_cwd)


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Remove all REPOWEAVE_ environment variables for clean testing."""
    original_env = os.environ.copy()
    for key in list(os.environ.keys()):
        if key.startswith("REPOWEAVE_"):
            del os.environ[key]
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def mock_engine() -> AsyncMock:
    """GitEngine double whose calls all succeed with empty results."""
    return make_engine()


@pytest.fixture
def fake_http() -> FakeVendorHttp:
    return FakeVendorHttp()


@pytest.fixture
def engine_repo() -> RepoAnnouncement:
    """Repository without any vendor-hosted clone URL."""
    return RepoAnnouncement(
        repo_id="npub1abc/relay-only",
        clone_urls=("https://git.example.org/alice/relay-only.git",),
        name="relay-only",
    )


@pytest.fixture
def github_repo() -> RepoAnnouncement:
    return RepoAnnouncement(
        repo_id="npub1abc/hello",
        clone_urls=("https://github.com/octo/hello.git",),
        name="hello",
    )
