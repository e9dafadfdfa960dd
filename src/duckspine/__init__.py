"""
duckspine - connection/session adapter for the embedded DuckDB engine.

Quick start::

    from duckspine import Connector

    with Connector.from_dsn("") as connector, connector.new_session() as session:
        session.execute("CREATE TABLE users(name VARCHAR, age INTEGER)")
        session.execute("INSERT INTO users VALUES (?, ?)", ["marc", 99])
        row = session.query_row("SELECT * FROM users WHERE age > ?", [30])
"""

__version__ = "0.1.0"

from duckspine.core.adapters import (  # noqa: E402
    ColumnInfo,
    Connector,
    ConnectorConfig,
    Row,
    RowCursor,
    Session,
    StatementHandle,
)
from duckspine.core.errors import (  # noqa: E402
    ConfigError,
    DatabaseConnectionError,
    DuckSpineError,
    ParamCountError,
    QueryError,
    StateError,
    TypeMismatchError,
    UseAfterCloseError,
)

__all__ = [
    "__version__",
    "ColumnInfo",
    "Connector",
    "ConnectorConfig",
    "Row",
    "RowCursor",
    "Session",
    "StatementHandle",
    "ConfigError",
    "DatabaseConnectionError",
    "DuckSpineError",
    "ParamCountError",
    "QueryError",
    "StateError",
    "TypeMismatchError",
    "UseAfterCloseError",
]
