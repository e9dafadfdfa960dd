"""Row cursor and typed rows.

A :class:`RowCursor` is a lazy, forward-only view over one execution of a
statement handle. Rows are pulled from the engine ``fetch_size`` at a
time. The cursor is invalidated when its handle is closed or executed
again; reading it afterwards raises :class:`UseAfterCloseError`.

If the owning session runs another statement while this cursor is still
streaming, the session first *detaches* the cursor: its remaining rows are
buffered in memory so the new statement cannot clobber them.

Examples:
    >>> cursor = session.query("SELECT name, age FROM users WHERE age > ?", [30])
    >>> for row in cursor:
    ...     print(row.get_str("name"), row.get_int("age"))
    >>> cursor.close()
"""

from __future__ import annotations

import datetime
from collections import deque
from collections.abc import Iterator, Mapping, Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from duckspine.core.errors import DuckSpineError, TypeMismatchError, UseAfterCloseError

from . import native as engine
from .types import ColumnInfo

if TYPE_CHECKING:
    from duckspine.core.protocols import NativeConnection

    from .resources import ResourceTracker
    from .session import Session
    from .statement import StatementHandle


class Row(Sequence):
    """One result row with positional, by-name and typed access.

    NULL reads as ``None`` through every accessor. Rows compare equal to
    tuples holding the same values.
    """

    __slots__ = ("_values", "_columns", "_index")

    def __init__(self, values: Sequence[Any], columns: Sequence[ColumnInfo], index: Mapping[str, int]):
        self._values = tuple(values)
        self._columns = tuple(columns)
        self._index = index

    # -- Sequence protocol -------------------------------------------------

    def __len__(self) -> int:
        return len(self._values)

    def __getitem__(self, key: Any) -> Any:
        if isinstance(key, str):
            return self._values[self._position(key)]
        return self._values[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Row):
            return self._values == other._values
        if isinstance(other, tuple):
            return self._values == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        if not self._columns:
            return f"Row{self._values!r}"
        fields = ", ".join(f"{c.name}={v!r}" for c, v in zip(self._columns, self._values, strict=False))
        return f"Row({fields})"

    # -- mapping-style access ----------------------------------------------

    def keys(self) -> list[str]:
        return [c.name for c in self._columns]

    def get(self, key: int | str, default: Any = None) -> Any:
        try:
            return self[key]
        except (KeyError, IndexError):
            return default

    def as_tuple(self) -> tuple[Any, ...]:
        return self._values

    def as_dict(self) -> dict[str, Any]:
        return {c.name: v for c, v in zip(self._columns, self._values, strict=False)}

    # -- typed accessors ---------------------------------------------------

    def get_str(self, key: int | str) -> str | None:
        return self._typed(key, "text", lambda v: v if isinstance(v, str) else _MISMATCH)

    def get_int(self, key: int | str) -> int | None:
        return self._typed(
            key, "integer", lambda v: v if isinstance(v, int) and not isinstance(v, bool) else _MISMATCH
        )

    def get_float(self, key: int | str) -> float | None:
        def convert(v: Any) -> Any:
            if isinstance(v, bool):
                return _MISMATCH
            if isinstance(v, (float, int, Decimal)):
                return float(v)
            return _MISMATCH

        return self._typed(key, "float", convert)

    def get_bool(self, key: int | str) -> bool | None:
        return self._typed(key, "boolean", lambda v: v if isinstance(v, bool) else _MISMATCH)

    def get_date(self, key: int | str) -> datetime.date | None:
        return self._typed(
            key,
            "date",
            lambda v: v
            if isinstance(v, datetime.date) and not isinstance(v, datetime.datetime)
            else _MISMATCH,
        )

    def get_datetime(self, key: int | str) -> datetime.datetime | None:
        return self._typed(key, "timestamp", lambda v: v if isinstance(v, datetime.datetime) else _MISMATCH)

    def get_decimal(self, key: int | str) -> Decimal | None:
        def convert(v: Any) -> Any:
            if isinstance(v, Decimal):
                return v
            if isinstance(v, int) and not isinstance(v, bool):
                return Decimal(v)
            return _MISMATCH

        return self._typed(key, "decimal", convert)

    # -- internals ---------------------------------------------------------

    def _position(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"No column named {name!r}; columns are {self.keys()}") from None

    def _typed(self, key: int | str, expected: str, convert: Any) -> Any:
        position = self._position(key) if isinstance(key, str) else key
        value = self._values[position]
        if value is None:
            return None
        result = convert(value)
        if result is _MISMATCH:
            column = self._columns[position] if position < len(self._columns) else None
            name = column.name if column else str(position)
            declared = column.type_name if column else type(value).__name__
            raise TypeMismatchError(
                f"Column {name!r} of type {declared} cannot be read as {expected} "
                f"(value is {type(value).__name__})",
                column=name,
                expected=expected,
                actual=declared,
            )
        return result


_MISMATCH = object()


class RowCursor:
    """Forward-only, non-restartable iterator over one execution's rows."""

    def __init__(
        self,
        *,
        statement: StatementHandle,
        session: Session,
        native: NativeConnection,
        columns: Sequence[ColumnInfo],
        fetch_size: int,
        tracker: ResourceTracker,
        owns_statement: bool = False,
    ):
        self._statement = statement
        self._session = session
        self._native = native
        self._columns = tuple(columns)
        self._index = _column_index(self._columns)
        self._fetch_size = fetch_size
        self._tracker = tracker
        self._owns_statement = owns_statement

        self._buffer: deque[tuple[Any, ...]] = deque()
        self._attached = True
        self._exhausted = False
        self._invalid_reason: str | None = None
        self._pending_error: DuckSpineError | None = None
        self._rownumber = 0

        self._registered = True
        tracker.acquire("cursor")

    # -- properties --------------------------------------------------------

    @property
    def columns(self) -> tuple[ColumnInfo, ...]:
        return self._columns

    @property
    def description(self) -> list[tuple[Any, ...]]:
        return [c.to_description() for c in self._columns]

    @property
    def rownumber(self) -> int:
        """Number of rows handed out so far."""
        return self._rownumber

    @property
    def closed(self) -> bool:
        return self._invalid_reason is not None

    @property
    def exhausted(self) -> bool:
        """End of results reached and every row handed out."""
        return self._exhausted and not self._buffer

    # -- reading -----------------------------------------------------------

    def fetchone(self) -> Row | None:
        """Next row, or ``None`` at end of results."""
        self._check_open()
        if not self._buffer and not self._exhausted:
            self._fill()
        if self._buffer:
            self._rownumber += 1
            return Row(self._buffer.popleft(), self._columns, self._index)
        if self._pending_error is not None:
            error, self._pending_error = self._pending_error, None
            self._finish()
            raise error
        self._finish()
        return None

    def fetchmany(self, size: int | None = None) -> list[Row]:
        size = self._fetch_size if size is None else size
        rows: list[Row] = []
        while len(rows) < size:
            row = self.fetchone()
            if row is None:
                break
            rows.append(row)
        return rows

    def fetchall(self) -> list[Row]:
        return list(self)

    def __iter__(self) -> RowCursor:
        return self

    def __next__(self) -> Row:
        row = self.fetchone()
        if row is None:
            raise StopIteration
        return row

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Release the cursor. Idempotent."""
        if self._invalid_reason is not None:
            return
        self._invalidate("cursor is closed")
        if self._owns_statement:
            self._statement.close()

    def __enter__(self) -> RowCursor:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- session / statement hooks -----------------------------------------

    def _detach(self) -> None:
        """Buffer the remaining rows so the native connection can be reused."""
        if not self._attached:
            return
        try:
            self._buffer.extend(engine.fetch_all(self._native, statement=self._statement.sql))
        except DuckSpineError as e:
            self._pending_error = e
        self._attached = False
        self._exhausted = True
        self._session._release_stream(self)

    def _invalidate(self, reason: str) -> None:
        """Mark the cursor unusable (handle closed or executed again)."""
        if self._invalid_reason is not None:
            return
        self._invalid_reason = reason
        self._buffer.clear()
        self._pending_error = None
        if self._attached:
            self._attached = False
            self._session._release_stream(self)
        self._unregister()

    # -- internals ---------------------------------------------------------

    def _check_open(self) -> None:
        if self._invalid_reason is None and self._session.closed:
            self._invalidate("session is closed")
        if self._invalid_reason is not None:
            raise UseAfterCloseError(f"Row cursor is no longer readable: {self._invalid_reason}").with_context(
                operation="fetch",
                statement=self._statement.sql,
                session_id=self._session.session_id,
            )

    def _fill(self) -> None:
        if not self._attached:
            self._exhausted = True
            return
        try:
            batch = engine.fetch_batch(self._native, self._fetch_size, statement=self._statement.sql)
        except DuckSpineError:
            self._attached = False
            self._exhausted = True
            self._session._release_stream(self)
            raise
        self._buffer.extend(batch)
        if len(batch) < self._fetch_size:
            self._attached = False
            self._exhausted = True
            self._session._release_stream(self)

    def _finish(self) -> None:
        """End of results reached: release engine-side resources."""
        if not self._registered:
            return
        self._exhausted = True
        self._statement._cursor_exhausted(self)
        self._unregister()
        if self._owns_statement:
            # Stays readable (returns None) until its session closes.
            self._owns_statement = False
            self._statement._close_owned_by(self)

    def _unregister(self) -> None:
        if self._registered:
            self._registered = False
            self._tracker.release("cursor")


def _column_index(columns: Sequence[ColumnInfo]) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, column in enumerate(columns):
        index.setdefault(column.name, position)
    return index


__all__ = [
    "Row",
    "RowCursor",
]
