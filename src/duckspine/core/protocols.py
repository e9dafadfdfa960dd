"""
Protocol for the native engine binding.

The adapter never calls DuckDB internals directly; it talks to objects
that satisfy :class:`NativeConnection`, which ``duckdb.DuckDBPyConnection``
does structurally. Tests can substitute a fake that matches the shape.

Architecture:
    ::

        NativeConnection
        ┌────────────────────────────────────────────────────────────┐
        │ cursor()                  → child connection, same database │
        │ execute(sql, params)      → run one statement               │
        │ fetchmany(n) / fetchone() → pull result rows                │
        │ description               → DB-API column description       │
        │ begin() / commit() / rollback()                             │
        │ extract_statements(sql)   → parsed statements, no execution │
        │ sql(query)                → lazy relation (schema probing)  │
        │ query_progress()          → percent done, -1 when unknown   │
        │ close()                                                     │
        └────────────────────────────────────────────────────────────┘

Tags:
    protocol, connection, duckdb, native-binding
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class NativeConnection(Protocol):
    """
    Minimal synchronous surface of the embedded engine's connection.

    A native connection is NOT safe for concurrent use; every adapter
    object that holds one is single-owner.
    """

    @property
    def description(self) -> list[tuple[Any, ...]] | None:
        """Column description of the last result, ``None`` if no rows."""
        ...

    def cursor(self) -> NativeConnection:
        """Open a child connection on the same database."""
        ...

    def execute(self, query: str, parameters: Sequence[Any] | None = None) -> Any:
        """Execute one statement."""
        ...

    def fetchone(self) -> tuple[Any, ...] | None:
        """Fetch one row of the last result."""
        ...

    def fetchmany(self, size: int = 1) -> list[tuple[Any, ...]]:
        """Fetch up to ``size`` rows of the last result."""
        ...

    def fetchall(self) -> list[tuple[Any, ...]]:
        """Fetch the remaining rows of the last result."""
        ...

    def begin(self) -> Any:
        """Start a transaction."""
        ...

    def commit(self) -> Any:
        """Commit the current transaction."""
        ...

    def rollback(self) -> Any:
        """Roll back the current transaction."""
        ...

    def extract_statements(self, query: str) -> list[Any]:
        """Parse ``query`` into statements without executing them."""
        ...

    def sql(self, query: str) -> Any:
        """Build a relation from ``query``."""
        ...

    def query_progress(self) -> float:
        """Progress of the running query in percent, ``-1`` when unknown."""
        ...

    def close(self) -> None:
        """Release the connection."""
        ...


__all__ = [
    "NativeConnection",
]
