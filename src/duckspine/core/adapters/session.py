"""
Session: one native connection plus its transaction state.

Sessions are created by :meth:`Connector.new_session` and are single-owner:
one thread at a time. Every statement handle and cursor created through a
session is owned by it and closed with it.

Manifesto:
    Outside an explicit transaction every statement is auto-committed by
    the engine. Explicit transactions go through :meth:`begin_transaction`,
    :meth:`commit` and :meth:`rollback` (or the :meth:`transaction` context
    manager), never through ``BEGIN``/``COMMIT`` text, so the session always
    knows its own transaction state.

Architecture:
    ::

        Session ──owns──▶ native child connection
           │
           ├── StatementHandle (prepare)       ──▶ RowCursor (bind_and_execute)
           └── query() = private handle + cursor, closed with the cursor

    At most one cursor streams from the native connection at a time. Any
    other statement first detaches it (buffers its remaining rows).

Tags:
    session, transaction, duckdb, adapter
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from duckspine.core.errors import QueryError, StateError, UseAfterCloseError
from duckspine.core.logging import LogContext, get_logger

from . import native as engine
from .cursor import Row, RowCursor
from .statement import StatementHandle
from .types import TransactionState

if TYPE_CHECKING:
    from duckspine.core.protocols import NativeConnection

    from .connector import Connector

logger = get_logger(__name__)


class Session:
    """A connection-scoped unit of work.

    Example:
        >>> with connector.new_session() as session:
        ...     session.execute("CREATE TABLE users (name VARCHAR, age INTEGER)")
        ...     session.execute("INSERT INTO users VALUES (?, ?)", ["marc", 99])
        ...     session.query_value("SELECT count(*) FROM users")
        1
    """

    def __init__(self, connector: Connector, native: NativeConnection, session_id: str):
        self._connector = connector
        self._native = native
        self._session_id = session_id
        self._transaction = TransactionState.NONE
        self._statements: list[StatementHandle] = []
        self._streaming: RowCursor | None = None
        self._closed = False
        connector.resources.acquire("session")

    # -- properties --------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def connector(self) -> Connector:
        return self._connector

    @property
    def transaction_state(self) -> TransactionState:
        return self._transaction

    @property
    def in_transaction(self) -> bool:
        return self._transaction is TransactionState.ACTIVE

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def fetch_size(self) -> int:
        return self._connector.config.fetch_size

    # -- statements --------------------------------------------------------

    def prepare(self, sql: str) -> StatementHandle:
        """Prepare one statement for repeated execution on this session."""
        self._check_open("prepare")
        self._release_streaming()
        handle = StatementHandle(self, sql)
        handle._prepare()
        self._statements.append(handle)
        return handle

    def execute(self, sql: str, params: Sequence[Any] | None = ()) -> int:
        """Run statements without a result set; returns affected rows.

        Several ``;``-separated statements run in order when no parameters
        are given, and their counts are summed.
        """
        self._check_open("execute")
        self._release_streaming()
        statements = engine.parse_statements(self._native, sql)
        if len(statements) > 1 and params:
            raise QueryError(
                f"execute: parameters given for {len(statements)} statements; bind one statement at a time"
            ).with_context(operation="execute", statement=sql, session_id=self._session_id)
        if len(statements) == 1:
            return self._execute_one(sql, params)

        total = 0
        for parsed in statements:
            total += self._execute_one(parsed.query, ())
        return total

    def query(self, sql: str, params: Sequence[Any] | None = ()) -> RowCursor:
        """Run a query and return a cursor over its rows.

        The statement handle behind the cursor is private and is released
        when the cursor is closed or exhausted.
        """
        handle = self.prepare(sql)
        try:
            return handle._open_cursor(params, owns_statement=True)
        except BaseException:
            handle.close()
            raise

    def query_row(self, sql: str, params: Sequence[Any] | None = ()) -> Row | None:
        """First row of a query, or ``None`` when it returns no rows."""
        with self.query(sql, params) as cursor:
            return cursor.fetchone()

    def query_value(self, sql: str, params: Sequence[Any] | None = ()) -> Any:
        """First column of the first row, ``None`` when there are no rows."""
        row = self.query_row(sql, params)
        return None if row is None else row[0]

    # -- transactions ------------------------------------------------------

    def begin_transaction(self) -> None:
        self._check_open("begin_transaction")
        if self._transaction is not TransactionState.NONE:
            raise StateError(
                f"Cannot begin a transaction while one is {self._transaction.value}"
            ).with_context(operation="begin_transaction", session_id=self._session_id)
        self._release_streaming()
        engine.transaction_call(self._native, "begin", session_id=self._session_id)
        self._transaction = TransactionState.ACTIVE
        logger.info("transaction_begin", session_id=self._session_id)

    def commit(self) -> None:
        """Commit the active transaction.

        If the engine rejects the commit it aborts the transaction, so the
        state returns to ``NONE`` either way.
        """
        self._finish_transaction("commit", TransactionState.COMMITTING)

    def rollback(self) -> None:
        self._finish_transaction("rollback", TransactionState.ROLLING_BACK)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Begin; commit on success, roll back and re-raise on error."""
        self.begin_transaction()
        try:
            yield self
        except BaseException:
            if self._transaction is TransactionState.ACTIVE:
                try:
                    self.rollback()
                except Exception as e:
                    logger.warning("release_failed", session_id=self._session_id, resource="transaction", error=str(e))
            raise
        if self._transaction is TransactionState.ACTIVE:
            self.commit()

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Close owned handles, roll back, release the connection. Idempotent."""
        if self._closed:
            return
        self._closed = True

        for handle in list(self._statements):
            try:
                handle.close()
            except Exception as e:
                logger.warning("release_failed", session_id=self._session_id, resource="statement", error=str(e))
        self._statements.clear()
        self._streaming = None

        if self._transaction is TransactionState.ACTIVE:
            try:
                engine.transaction_call(self._native, "rollback", session_id=self._session_id)
            except Exception as e:
                logger.warning("release_failed", session_id=self._session_id, resource="transaction", error=str(e))
        self._transaction = TransactionState.NONE

        try:
            self._native.close()
        except Exception as e:
            logger.warning("release_failed", session_id=self._session_id, resource="connection", error=str(e))

        self._connector.resources.release("session")
        self._connector._forget_session(self)
        logger.info("session_closed", session_id=self._session_id)

    def __enter__(self) -> Session:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else self._transaction.value
        return f"Session({self._session_id!r}, {state})"

    # -- hooks used by statements and cursors --------------------------------

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise UseAfterCloseError("Session is closed").with_context(
                operation=operation, session_id=self._session_id
            )

    def _release_streaming(self) -> None:
        """Detach the streaming cursor, if any, before the connection is reused."""
        if self._streaming is not None:
            self._streaming._detach()

    def _attach_stream(self, cursor: RowCursor) -> None:
        self._streaming = cursor

    def _release_stream(self, cursor: RowCursor) -> None:
        if self._streaming is cursor:
            self._streaming = None

    def _forget_statement(self, handle: StatementHandle) -> None:
        if handle in self._statements:
            self._statements.remove(handle)

    @contextmanager
    def _running_query(self) -> Iterator[None]:
        with LogContext(session_id=self._session_id), self._connector._tracking_progress(self._native):
            yield

    # -- internals ---------------------------------------------------------

    def _execute_one(self, sql: str, params: Sequence[Any] | None) -> int:
        with self.prepare(sql) as handle:
            return handle.execute(params)

    def _finish_transaction(self, action: str, transitional: TransactionState) -> None:
        self._check_open(action)
        if self._transaction is not TransactionState.ACTIVE:
            raise StateError(f"No active transaction to {action}").with_context(
                operation=action, session_id=self._session_id
            )
        self._release_streaming()
        self._transaction = transitional
        try:
            engine.transaction_call(self._native, action, session_id=self._session_id)
        finally:
            self._transaction = TransactionState.NONE
        logger.info(f"transaction_{action}", session_id=self._session_id)


__all__ = [
    "Session",
]
