"""Connector configuration and adapter state types."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlencode

from duckspine.core.errors import ConfigError

if TYPE_CHECKING:
    from duckspine.core.settings import DuckSpineSettings

MEMORY_DATABASE = ":memory:"

_EXTENSION_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TransactionState(str, Enum):
    """Transaction state of a session."""

    NONE = "none"
    ACTIVE = "active"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"


class StatementState(str, Enum):
    """Lifecycle of a statement handle.

    ``CREATED -> PREPARED -> EXECUTING -> EXHAUSTED / CLOSED``; binding
    again from ``EXHAUSTED`` returns to ``EXECUTING``.
    """

    CREATED = "created"
    PREPARED = "prepared"
    EXECUTING = "executing"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


@dataclass(frozen=True)
class ColumnInfo:
    """Name and declared engine type of one result column."""

    name: str
    type_name: str

    def to_description(self) -> tuple[Any, ...]:
        """DB-API style 7-item description tuple."""
        return (self.name, self.type_name, None, None, None, None, None)


@dataclass(frozen=True)
class ConnectorConfig:
    """
    Immutable configuration of one connector.

    ``database`` is a file path, or ``""`` / ``":memory:"`` for an
    in-memory database. ``options`` are engine settings passed when the
    database is opened (``threads``, ``access_mode``, ...). ``extensions``
    are installed and loaded once when the connector starts.
    ``init_statements`` run on every native connection before it is
    handed to a caller.
    """

    database: str = ""
    options: Mapping[str, str] = field(default_factory=dict)
    extensions: tuple[str, ...] = ()
    init_statements: tuple[str, ...] = ()
    read_only: bool = False
    fetch_size: int = 1024

    def __post_init__(self) -> None:
        if not isinstance(self.database, str):
            raise ConfigError(f"database must be a string, got {type(self.database).__name__}")
        if not isinstance(self.options, Mapping):
            raise ConfigError("options must be a mapping of option name to value")
        for key, value in self.options.items():
            if not isinstance(key, str) or not key.strip():
                raise ConfigError(f"Invalid engine option name: {key!r}")
            if not isinstance(value, str):
                raise ConfigError(f"Engine option {key!r} must be a string, got {type(value).__name__}")
        for name in self.extensions:
            if not isinstance(name, str) or not _EXTENSION_NAME.match(name):
                raise ConfigError(f"Invalid extension name: {name!r}")
        for stmt in self.init_statements:
            if not isinstance(stmt, str) or not stmt.strip():
                raise ConfigError(f"Invalid init statement: {stmt!r}")
        if isinstance(self.fetch_size, bool) or not isinstance(self.fetch_size, int) or self.fetch_size <= 0:
            raise ConfigError(f"fetch_size must be a positive integer, got {self.fetch_size!r}")

        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))
        object.__setattr__(self, "extensions", tuple(self.extensions))
        object.__setattr__(self, "init_statements", tuple(self.init_statements))

    @property
    def in_memory(self) -> bool:
        """Whether the database lives only in process memory."""
        return self.database in ("", MEMORY_DATABASE)

    @property
    def target(self) -> str:
        """Database argument handed to the engine."""
        return MEMORY_DATABASE if self.in_memory else self.database

    def engine_options(self) -> dict[str, str]:
        """Options for the engine's open call."""
        options = dict(self.options)
        if self.read_only:
            options.setdefault("access_mode", "read_only")
        return options

    def to_connection_string(self) -> str:
        """Render back to ``path?option=value`` form."""
        if not self.options:
            return self.database
        return f"{self.database}?{urlencode(sorted(self.options.items()))}"

    @classmethod
    def from_dsn(cls, dsn: str | None, **kwargs: Any) -> ConnectorConfig:
        """
        Parse a connection string.

        Usage:
            ConnectorConfig.from_dsn("")                                # in-memory
            ConnectorConfig.from_dsn("data/app.duckdb?threads=4")
            ConnectorConfig.from_dsn("?access_mode=read_only", fetch_size=256)
        """
        dsn = dsn or ""
        database, _, query = dsn.partition("?")
        options: dict[str, str] = {}
        if query:
            try:
                pairs = parse_qsl(query, keep_blank_values=True, strict_parsing=True)
            except ValueError as e:
                raise ConfigError(f"Malformed connection string options: {query!r}", cause=e) from e
            for key, value in pairs:
                if key in options:
                    raise ConfigError(f"Duplicate engine option in connection string: {key!r}")
                options[key] = value
        options.update(kwargs.pop("options", None) or {})
        return cls(database=database, options=options, **kwargs)

    @classmethod
    def from_settings(cls, settings: DuckSpineSettings) -> ConnectorConfig:
        """Build a config from validated environment settings."""
        return cls(
            database=settings.database,
            options=settings.options,
            extensions=tuple(settings.extensions),
            init_statements=tuple(settings.init_statements),
            read_only=settings.read_only,
            fetch_size=settings.fetch_size,
        )


__all__ = [
    "MEMORY_DATABASE",
    "TransactionState",
    "StatementState",
    "ColumnInfo",
    "ConnectorConfig",
]
