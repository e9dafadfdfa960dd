"""Native engine binding.

Thin layer over the ``duckdb`` Python module. It is the only module that
imports ``duckdb``; everything above it talks to
:class:`~duckspine.core.protocols.NativeConnection` objects and adapter
errors.

Responsibilities:
    - open the root database handle with engine options
    - open child connections (one per session) sharing that database
    - parse statements without executing them
    - probe a SELECT's result schema without executing it
    - translate engine exceptions into the adapter taxonomy
    - normalize engine type names and progress values
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import duckdb

from duckspine.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DuckSpineError,
    QueryError,
)
from duckspine.core.protocols import NativeConnection

from .placeholders import probe_sql
from .types import ColumnInfo, ConnectorConfig

# Statement kinds whose result is a changed-row count
CHANGED_ROW_KINDS = frozenset({"INSERT", "UPDATE", "DELETE", "COPY", "MERGE_INTO"})

# Older bindings report DB-API style type groups instead of engine types
_LEGACY_TYPE_NAMES = {
    "STRING": "VARCHAR",
    "NUMBER": "NUMERIC",
    "BOOL": "BOOLEAN",
    "DATETIME": "TIMESTAMP",
    "BINARY": "BLOB",
}


@dataclass(frozen=True)
class ParsedStatement:
    """One statement as the engine's parser sees it."""

    query: str
    kind: str

    @property
    def returns_rows(self) -> bool:
        return self.kind == "SELECT"

    @property
    def changes_rows(self) -> bool:
        return self.kind in CHANGED_ROW_KINDS


def open_database(config: ConnectorConfig) -> NativeConnection:
    """Open the root handle for ``config``.

    Bad options surface as ``ConfigError``; I/O failures (missing
    directory, file locked by another process) as the retryable
    ``DatabaseConnectionError``.
    """
    try:
        return duckdb.connect(database=config.target, config=config.engine_options())
    except duckdb.IOException as e:
        raise DatabaseConnectionError(
            f"Failed to open database {config.target!r}: {e}", cause=e
        ).with_context(operation="open", database=config.target) from e
    except duckdb.Error as e:
        raise ConfigError(
            f"Invalid configuration for database {config.target!r}: {e}", cause=e
        ).with_context(operation="open", database=config.target) from e


def open_child(root: NativeConnection) -> NativeConnection:
    """Open a new native connection on the root's database."""
    try:
        return root.cursor()
    except duckdb.Error as e:
        raise DatabaseConnectionError(f"Failed to open connection: {e}", cause=e).with_context(
            operation="new_session"
        ) from e


def load_extension(native: NativeConnection, name: str) -> None:
    """Install (if needed) and load one extension."""
    native.execute(f"INSTALL {name}")
    native.execute(f"LOAD {name}")


def configure_database(root: NativeConnection, config: ConnectorConfig) -> None:
    """Load extensions and validate init statements on the root handle.

    Runs once when the connector starts; any failure is a ``ConfigError``.
    """
    current = None
    try:
        for name in config.extensions:
            current = f"INSTALL {name}; LOAD {name}"
            load_extension(root, name)
        for statement in config.init_statements:
            current = statement
            root.execute(statement)
    except duckdb.Error as e:
        raise ConfigError(f"Connector setup failed on {current!r}: {e}", cause=e).with_context(
            operation="configure", statement=current, database=config.target
        ) from e


def prepare_connection(native: NativeConnection, init_statements: Sequence[str]) -> None:
    """Issue per-connection init statements before the caller sees it."""
    for statement in init_statements:
        try:
            native.execute(statement)
        except duckdb.Error as e:
            raise DatabaseConnectionError(f"Connection setup failed on {statement!r}: {e}", cause=e).with_context(
                operation="new_session", statement=statement
            ) from e


def transaction_call(native: NativeConnection, action: str, *, session_id: str | None = None) -> None:
    """Run ``begin``, ``commit`` or ``rollback`` on the native connection."""
    try:
        getattr(native, action)()
    except duckdb.Error as e:
        raise translate_error(e, operation=action, session_id=session_id) from e


def query_progress(native: NativeConnection) -> float:
    """Progress of the query running on ``native`` as a fraction.

    Advisory: an engine that cannot report progress right now reads as 0.
    """
    try:
        raw = native.query_progress()
    except duckdb.Error:
        return 0.0
    return progress_fraction(raw)


def parse_statements(native: NativeConnection, sql: str) -> list[ParsedStatement]:
    """Split and parse ``sql`` without executing anything."""
    try:
        statements = native.extract_statements(sql)
    except duckdb.Error as e:
        raise translate_error(e, operation="prepare", statement=sql) from e
    return [ParsedStatement(query=stmt.query, kind=_enum_name(stmt.type)) for stmt in statements]


def probe_schema(native: NativeConnection, parsed: ParsedStatement) -> tuple[ColumnInfo, ...] | None:
    """Bind a SELECT to learn its result columns, without running it.

    Placeholders are bound as ``NULL`` for the probe. Returns ``None``
    when the schema can only be known after execution (non-SELECT
    statements, or statements whose binding depends on parameter values).
    """
    if not parsed.returns_rows:
        return None
    try:
        relation = native.sql(probe_sql(parsed.query))
        names = list(relation.columns)
        types = list(relation.types)
    except duckdb.Error:
        return None
    return tuple(ColumnInfo(name=str(n), type_name=normalize_type_name(t)) for n, t in zip(names, types, strict=True))


def run(native: NativeConnection, sql: str, params: Sequence[Any], *, operation: str) -> None:
    """Execute one statement, translating engine errors."""
    try:
        native.execute(sql, list(params) if params else None)
    except duckdb.Error as e:
        raise translate_error(e, operation=operation, statement=sql) from e


def describe(native: NativeConnection) -> tuple[ColumnInfo, ...]:
    """Columns of the result currently held by ``native``."""
    description = native.description or []
    return tuple(ColumnInfo(name=str(d[0]), type_name=normalize_type_name(d[1])) for d in description)


def fetch_batch(native: NativeConnection, size: int, *, statement: str | None = None) -> list[tuple[Any, ...]]:
    """Pull up to ``size`` rows of the pending result."""
    try:
        return native.fetchmany(size)
    except duckdb.Error as e:
        raise translate_error(e, operation="fetch", statement=statement) from e


def fetch_all(native: NativeConnection, *, statement: str | None = None) -> list[tuple[Any, ...]]:
    """Pull every remaining row of the pending result."""
    try:
        return native.fetchall()
    except duckdb.Error as e:
        raise translate_error(e, operation="fetch", statement=statement) from e


def changed_rows(native: NativeConnection, *, statement: str | None = None) -> int:
    """Changed-row count of a DML result.

    DML without ``RETURNING`` yields one ``Count`` row; with ``RETURNING``
    the returned rows are counted instead.
    """
    columns = describe(native)
    rows = fetch_all(native, statement=statement)
    if len(columns) == 1 and columns[0].name == "Count" and len(rows) == 1:
        return int(rows[0][0])
    return len(rows)


def drain(native: NativeConnection, *, statement: str | None = None) -> None:
    """Discard any pending result."""
    if native.description:
        fetch_all(native, statement=statement)


def translate_error(
    exc: BaseException,
    *,
    operation: str,
    statement: str | None = None,
    session_id: str | None = None,
) -> DuckSpineError:
    """Wrap an engine exception, keeping its message verbatim."""
    if isinstance(exc, DuckSpineError):
        return exc
    return QueryError(f"{operation}: {exc}", cause=exc).with_context(
        operation=operation,
        statement=statement,
        session_id=session_id,
        engine_error=type(exc).__name__,
    )


def normalize_type_name(type_code: Any) -> str:
    """Engine type name (``VARCHAR``, ``INTEGER``...) from a type object."""
    name = str(type_code).strip()
    return _LEGACY_TYPE_NAMES.get(name.upper(), name.upper())


def progress_fraction(raw: float | None) -> float:
    """Map the engine's percentage (``-1`` = unknown) onto ``[0, 1]``."""
    if raw is None or raw < 0:
        return 0.0
    return min(max(raw / 100.0, 0.0), 1.0)


def _enum_name(value: Any) -> str:
    name = getattr(value, "name", None)
    if name is None:
        name = str(value).rsplit(".", 1)[-1]
    name = str(name).upper()
    return name.removesuffix("_STATEMENT")


__all__ = [
    "CHANGED_ROW_KINDS",
    "ParsedStatement",
    "open_database",
    "open_child",
    "load_extension",
    "configure_database",
    "prepare_connection",
    "transaction_call",
    "query_progress",
    "parse_statements",
    "probe_schema",
    "run",
    "describe",
    "fetch_batch",
    "fetch_all",
    "changed_rows",
    "drain",
    "translate_error",
    "normalize_type_name",
    "progress_fraction",
]
