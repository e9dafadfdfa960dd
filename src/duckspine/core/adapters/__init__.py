"""Engine adapter -- connector, sessions, prepared statements, cursors.

Manifesto:
    A generic SQL client API mapped onto DuckDB's native calling
    convention. The engine does the database work; this layer owns
    resource lifetimes, transaction state, parameter contracts and
    progress polling, and turns engine failures into typed errors.

Architecture::

    Connector (connector.py)          root database handle, new_session(), progress()
        |-- Session (session.py)      one child connection + transaction state
            |-- StatementHandle       prepared statement, bind_and_execute()
                |-- RowCursor         lazy forward-only rows (cursor.py)
    native.py                         the only module importing duckdb
    placeholders.py                   positional placeholder scanner
    resources.py                      ResourceTracker (leak accounting)
    types.py                          ConnectorConfig, ColumnInfo, state enums

Guardrails:
    ❌ ``session.execute("SELECT * FROM t WHERE id=" + user_input)``
    ✅ ``session.query("SELECT * FROM t WHERE id=?", [user_input])``
    ❌ ``session.execute("BEGIN")``
    ✅ ``with session.transaction(): ...``

Tags:
    duckdb, adapter, session, prepared-statement, cursor, progress
"""

from duckspine.core.adapters.connector import Connector
from duckspine.core.adapters.cursor import Row, RowCursor
from duckspine.core.adapters.placeholders import count_placeholders, scan_placeholders
from duckspine.core.adapters.resources import ResourceTracker
from duckspine.core.adapters.session import Session
from duckspine.core.adapters.statement import StatementHandle
from duckspine.core.adapters.types import (
    MEMORY_DATABASE,
    ColumnInfo,
    ConnectorConfig,
    StatementState,
    TransactionState,
)

__all__ = [
    "Connector",
    "Session",
    "StatementHandle",
    "Row",
    "RowCursor",
    "ResourceTracker",
    "ColumnInfo",
    "ConnectorConfig",
    "StatementState",
    "TransactionState",
    "MEMORY_DATABASE",
    "count_placeholders",
    "scan_placeholders",
]
