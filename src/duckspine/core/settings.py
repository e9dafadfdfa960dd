"""Environment-driven settings for duckspine.

``DuckSpineSettings`` reads ``DUCKSPINE_*`` environment variables and
``.env`` files, validates them with pydantic, and is turned into an
immutable :class:`~duckspine.core.adapters.types.ConnectorConfig` at
startup.

Examples:
    >>> import os
    >>> os.environ["DUCKSPINE_DATABASE"] = "data/analytics.duckdb"
    >>> os.environ["DUCKSPINE_OPTIONS"] = '{"threads": "4"}'
    >>> get_settings.cache_clear()
    >>> get_settings().options
    {'threads': '4'}

Tags:
    settings, configuration, pydantic, environment, duckspine
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DuckSpineSettings(BaseSettings):
    """Connector and logging settings.

    Fields
    ──────
    database         : Data source path, ``""`` / ``":memory:"`` for in-memory
    options          : Engine options applied when the database is opened
    extensions       : Extensions installed and loaded at connector start
    init_statements  : Statements issued on every new native connection
    read_only        : Open the database in read-only access mode
    fetch_size       : Rows pulled from the engine per cursor batch
    log_level        : structlog level
    log_format       : ``json`` or ``console``
    """

    model_config = SettingsConfigDict(
        env_prefix="DUCKSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database: str = Field(default="", description="Path, or empty for in-memory")
    options: dict[str, str] = Field(default_factory=dict)
    extensions: list[str] = Field(default_factory=list)
    init_statements: list[str] = Field(default_factory=list)
    read_only: bool = Field(default=False)
    fetch_size: int = Field(default=1024, gt=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("options", mode="before")
    @classmethod
    def _stringify_options(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(k): str(v).lower() if isinstance(v, bool) else str(v) for k, v in value.items()}
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError(f"log_format must be 'json' or 'console', got {value!r}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> DuckSpineSettings:
    """Return the cached settings instance."""
    return DuckSpineSettings()


__all__ = [
    "DuckSpineSettings",
    "get_settings",
]
