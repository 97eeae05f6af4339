from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from repoweave.constants import (
    COMMIT_CACHE_TTL_SECONDS,
    DEFAULT_COMMIT_DEPTH,
    DEFAULT_PAGE_SIZE,
    DEFAULT_VENDOR_TIMEOUT,
    FILE_CONTENT_TTL_SECONDS,
    FILE_LISTING_FAILURE_BACKOFF,
    FILE_LISTING_TTL_SECONDS,
    MAX_CACHE_FILE_SIZE,
    MAX_PAGE_SIZE,
)
from repoweave.exceptions import ConfigError
from repoweave.logging import get_logger

__all__ = [
    "RepoWeaveConfig",
    "VendorConfig",
    "CommitConfig",
    "FileCacheConfig",
    "CacheConfig",
    "PushConfig",
    "TokenConfig",
    "load_config",
    "get_user_config_path",
]

logger = get_logger(__name__)

PushMode = Literal["best-effort", "all-or-nothing"]

_PROJECT_CONFIG_PATH: ContextVar[Path | None] = ContextVar(
    "repoweave_project_config_path", default=None
)


class VendorConfig(BaseModel):
    """Settings for vendor REST API reads.

    Attributes:
        prefer_vendor_reads: Try vendor APIs before the git engine.
        timeout_seconds: Per-request timeout; expiry maps to a TIMEOUT error.
        max_retries: Extra attempts for 429/5xx responses within one credential.
        rate_limit: Optional requests per ``rate_period`` (disabled when None).
        rate_period: Rate limiting window in seconds.
    """

    prefer_vendor_reads: bool = True
    timeout_seconds: float = Field(default=DEFAULT_VENDOR_TIMEOUT, gt=0, le=300)
    max_retries: int = Field(default=0, ge=0, le=5)
    rate_limit: int | None = Field(default=None, gt=0)
    rate_period: float = Field(default=60.0, gt=0)


class CommitConfig(BaseModel):
    """Settings for commit history paging and caching."""

    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, gt=0)
    default_depth: int = Field(default=DEFAULT_COMMIT_DEPTH, gt=0)
    enable_caching: bool = True
    cache_ttl_seconds: float = Field(default=COMMIT_CACHE_TTL_SECONDS, gt=0)

    @field_validator("max_page_size")
    @classmethod
    def check_max_page_size(cls, v: int) -> int:
        if v > 1000:
            logger.warning("max_page_size_large", max_page_size=v)
        return v


class FileCacheConfig(BaseModel):
    """Settings for file listing and file content caches."""

    enable_caching: bool = True
    content_ttl_seconds: float = Field(default=FILE_CONTENT_TTL_SECONDS, gt=0)
    listing_ttl_seconds: float = Field(default=FILE_LISTING_TTL_SECONDS, gt=0)
    max_cache_file_size: int = Field(default=MAX_CACHE_FILE_SIZE, gt=0)
    failure_backoff_seconds: float = Field(default=FILE_LISTING_FAILURE_BACKOFF, ge=0)


class CacheConfig(BaseModel):
    """Settings for one registered cache namespace.

    Attributes:
        ttl_seconds: Default lifetime of an entry.
        max_size: Optional entry limit; the oldest entry is evicted first.
        key_prefix: Prefix prepended to every key of the namespace.
    """

    ttl_seconds: float = Field(default=300.0, gt=0)
    max_size: int | None = Field(default=None, gt=0)
    key_prefix: str = ""


class PushConfig(BaseModel):
    """Settings for multi-remote push fan-out."""

    default_mode: PushMode = "best-effort"
    allow_force: bool = False


class TokenConfig(BaseModel):
    """A stored credential for one host."""

    host: str
    token: str

    @field_validator("host")
    @classmethod
    def normalize_host(cls, v: str) -> str:
        return v.strip().lower()


class YamlConfigSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from YAML files."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: Path | None = None,
    ):
        super().__init__(settings_cls)
        self.yaml_file = yaml_file
        self._config_data: dict[str, Any] = {}
        if yaml_file and yaml_file.exists():
            try:
                with open(yaml_file) as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(
                    message=f"Invalid YAML in {yaml_file}: {e}",
                    field=None,
                    value=None,
                ) from e
            if loaded is None:
                logger.warning("config_file_empty", path=str(yaml_file))
            elif not isinstance(loaded, dict):
                raise ConfigError(
                    message=f"Top-level YAML in {yaml_file} must be a mapping",
                    value=type(loaded).__name__,
                )
            else:
                self._config_data = loaded

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get value for a specific field from the YAML config."""
        if field_name in self._config_data:
            return self._config_data[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return the complete config data."""
        return self._config_data


class RepoWeaveConfig(BaseSettings):
    """Root configuration object containing all repoweave settings."""

    model_config = SettingsConfigDict(
        env_prefix="REPOWEAVE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    vendor: VendorConfig = Field(default_factory=VendorConfig)
    commits: CommitConfig = Field(default_factory=CommitConfig)
    files: FileCacheConfig = Field(default_factory=FileCacheConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    tokens: list[TokenConfig] = Field(default_factory=list)
    verbosity: Literal["error", "warning", "info", "debug"] = "warning"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources.

        Priority (highest to lowest):
        1. Init arguments
        2. Environment variables (REPOWEAVE_*)
        3. Project YAML config (./repoweave.yaml or the path given to load_config)
        4. User YAML config (~/.config/repoweave/config.yaml)
        """
        project_config_path = _PROJECT_CONFIG_PATH.get() or (
            Path.cwd() / "repoweave.yaml"
        )
        return (
            init_settings,
            env_settings,
            YamlConfigSource(settings_cls, project_config_path),
            YamlConfigSource(settings_cls, get_user_config_path()),
        )


def get_user_config_path() -> Path:
    """Get the path to the user configuration file.

    Returns:
        Path to ~/.config/repoweave/config.yaml
    """
    return Path.home() / ".config" / "repoweave" / "config.yaml"


def load_config(config_path: Path | None = None) -> RepoWeaveConfig:
    """Load configuration with hierarchy: defaults -> user -> project -> env.

    Args:
        config_path: Optional path to project config file. Defaults to ./repoweave.yaml

    Returns:
        RepoWeaveConfig instance with merged configuration

    Raises:
        ConfigError: If configuration is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "repoweave.yaml"

    if not config_path.exists():
        logger.info("project_config_missing", path=str(config_path))

    token = _PROJECT_CONFIG_PATH.set(config_path)
    try:
        return RepoWeaveConfig()
    except ValidationError as e:
        first_error = e.errors()[0]
        field = ".".join(str(loc) for loc in first_error["loc"])
        raise ConfigError(
            message=f"Invalid configuration: {first_error['msg']}",
            field=field,
            value=first_error.get("input"),
        ) from e
    finally:
        _PROJECT_CONFIG_PATH.reset(token)
