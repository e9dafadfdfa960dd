"""Prepared statement handle.

A :class:`StatementHandle` is bound to exactly one session. Preparing it
parses the statement through the engine, counts its positional
placeholders and, for queries, binds it once to learn the result schema,
all without executing anything. The handle can then be executed any
number of times with different parameter sets.

State machine::

    CREATED ──prepare──▶ PREPARED ──bind──▶ EXECUTING ──end of rows──▶ EXHAUSTED
                                              ▲    │                       │
                                              └────┴──────── bind ◀────────┘
    any state ──close──▶ CLOSED

Each execution invalidates the cursor of the previous one.

Examples:
    >>> with session.prepare("INSERT INTO users VALUES (?, ?)") as insert:
    ...     insert.execute(["Kevin", 11])
    ...     insert.execute(["Bob", 12])
    >>> older = session.prepare("SELECT * FROM users WHERE age > ?")
    >>> rows = older.bind_and_execute([11]).fetchall()
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from duckspine.core.errors import (
    DuckSpineError,
    ParamCountError,
    QueryError,
    StateError,
    UseAfterCloseError,
)
from duckspine.core.logging import get_logger

from . import native as engine
from .cursor import RowCursor
from .placeholders import count_placeholders
from .types import ColumnInfo, StatementState

if TYPE_CHECKING:
    from .session import Session

logger = get_logger(__name__)


class StatementHandle:
    """Reusable prepared statement owned by one :class:`Session`.

    Create handles with :meth:`Session.prepare` (or :meth:`prepare`);
    the constructor alone leaves the handle in ``CREATED``.
    """

    def __init__(self, session: Session, sql: str):
        self._session = session
        self._sql = sql
        self._state = StatementState.CREATED
        self._parsed: engine.ParsedStatement | None = None
        self._param_count = 0
        self._columns: tuple[ColumnInfo, ...] | None = None
        self._cursor: RowCursor | None = None
        self._executions = 0
        self._registered = False

    @classmethod
    def prepare(cls, session: Session, sql: str) -> StatementHandle:
        """Prepare ``sql`` on ``session``."""
        return session.prepare(sql)

    # -- properties --------------------------------------------------------

    @property
    def sql(self) -> str:
        return self._sql

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> StatementState:
        return self._state

    @property
    def param_count(self) -> int:
        """Number of positional parameters the statement expects."""
        return self._param_count

    @property
    def columns(self) -> tuple[ColumnInfo, ...] | None:
        """Result schema; ``None`` until known (statements without a
        prepare-time schema learn it on first execution)."""
        return self._columns

    @property
    def kind(self) -> str | None:
        """Engine statement type (``SELECT``, ``INSERT``, ``CREATE``...)."""
        return self._parsed.kind if self._parsed else None

    @property
    def executions(self) -> int:
        return self._executions

    @property
    def closed(self) -> bool:
        return self._state is StatementState.CLOSED

    # -- execution ---------------------------------------------------------

    def bind_and_execute(self, params: Sequence[Any] | None = ()) -> RowCursor:
        """Bind ``params`` left to right, execute, and return a row cursor.

        Invalidates the cursor returned by any earlier execution.
        """
        return self._open_cursor(params, owns_statement=False)

    def execute(self, params: Sequence[Any] | None = ()) -> int:
        """Execute a statement without a result set; returns affected rows."""
        values = self._bind(params, operation="execute")
        self._begin_execution()
        native = self._session._native
        with self._session._running_query():
            self._run(values, operation="execute")
            try:
                if self._parsed is not None and self._parsed.changes_rows:
                    affected = engine.changed_rows(native, statement=self._sql)
                else:
                    engine.drain(native, statement=self._sql)
                    affected = 0
            except DuckSpineError as e:
                self._state = StatementState.PREPARED
                raise e.with_context(session_id=self._session.session_id)
            logger.debug("statement_executed", kind=self.kind, affected=affected)
        self._state = StatementState.EXHAUSTED
        return affected

    def execute_many(self, param_sets: Iterable[Sequence[Any]]) -> int:
        """Execute once per parameter set; returns the summed affected rows."""
        return sum(self.execute(params) for params in param_sets)

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Release the handle and invalidate its cursor. Idempotent."""
        self._close(keep=None)

    def __enter__(self) -> StatementHandle:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"StatementHandle({self._sql!r}, state={self._state.value}, params={self._param_count})"

    # -- session / cursor hooks --------------------------------------------

    def _prepare(self) -> None:
        """Parse, count placeholders and probe the schema. Called by the session."""
        session = self._session
        statements = engine.parse_statements(session._native, self._sql)
        if len(statements) != 1:
            raise QueryError(
                f"prepare: expected exactly one statement, found {len(statements)}"
            ).with_context(operation="prepare", statement=self._sql, session_id=session.session_id)

        parsed = statements[0]
        if parsed.kind == "TRANSACTION":
            raise StateError(
                "Transaction control statements are not accepted; use begin_transaction/commit/rollback"
            ).with_context(operation="prepare", statement=self._sql, session_id=session.session_id)

        self._parsed = parsed
        self._param_count = count_placeholders(self._sql)
        self._columns = engine.probe_schema(session._native, self._parsed)

        session.connector.resources.acquire("statement")
        self._registered = True
        self._state = StatementState.PREPARED
        logger.debug(
            "statement_prepared",
            session_id=session.session_id,
            kind=self._parsed.kind,
            params=self._param_count,
            columns=len(self._columns) if self._columns is not None else None,
        )

    def _open_cursor(self, params: Sequence[Any] | None, *, owns_statement: bool) -> RowCursor:
        values = self._bind(params, operation="bind_and_execute")
        self._begin_execution()
        session = self._session
        with session._running_query():
            self._run(values, operation="bind_and_execute")

        # Prepare-time schema carries the engine's declared types; keep it when it still fits.
        described = engine.describe(session._native)
        if self._columns is None or len(self._columns) != len(described):
            self._columns = described

        cursor = RowCursor(
            statement=self,
            session=session,
            native=session._native,
            columns=self._columns,
            fetch_size=session.fetch_size,
            tracker=session.connector.resources,
            owns_statement=owns_statement,
        )
        self._cursor = cursor
        session._attach_stream(cursor)
        return cursor

    def _cursor_exhausted(self, cursor: RowCursor) -> None:
        if cursor is self._cursor and self._state is StatementState.EXECUTING:
            self._state = StatementState.EXHAUSTED

    def _close_owned_by(self, cursor: RowCursor) -> None:
        self._close(keep=cursor)

    # -- internals ---------------------------------------------------------

    def _check_open(self, operation: str) -> None:
        if self._state is StatementState.CLOSED:
            raise UseAfterCloseError("Statement handle is closed").with_context(
                operation=operation, statement=self._sql, session_id=self._session.session_id
            )
        self._session._check_open(operation)

    def _bind(self, params: Sequence[Any] | None, *, operation: str) -> list[Any]:
        self._check_open(operation)
        if params is None:
            values: list[Any] = []
        elif isinstance(params, (str, bytes, Mapping)) or not isinstance(params, Sequence):
            raise TypeError(f"Parameters must be a sequence of positional values, got {type(params).__name__}")
        else:
            values = list(params)
        if len(values) != self._param_count:
            raise ParamCountError(self._param_count, len(values)).with_context(
                operation=operation, statement=self._sql, session_id=self._session.session_id
            )
        return values

    def _begin_execution(self) -> None:
        if self._cursor is not None:
            self._cursor._invalidate("statement handle was executed again")
            self._cursor = None
        self._session._release_streaming()
        self._state = StatementState.EXECUTING
        self._executions += 1

    def _run(self, values: list[Any], *, operation: str) -> None:
        try:
            engine.run(self._session._native, self._sql, values, operation=operation)
        except DuckSpineError as e:
            self._state = StatementState.PREPARED
            raise e.with_context(session_id=self._session.session_id)

    def _close(self, keep: RowCursor | None) -> None:
        if self._state is StatementState.CLOSED:
            return
        if self._cursor is not None and self._cursor is not keep:
            self._cursor._invalidate("statement handle was closed")
        self._cursor = None
        self._state = StatementState.CLOSED
        self._session._forget_statement(self)
        if self._registered:
            self._registered = False
            self._session.connector.resources.release("statement")


__all__ = [
    "StatementHandle",
]
