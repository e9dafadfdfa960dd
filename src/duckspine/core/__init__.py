"""
Core primitives: errors, logging, settings, protocols and the engine adapter.

Modules
-------
errors          DuckSpineError hierarchy and helpers
logging         structlog configuration and context helpers
settings        DUCKSPINE_* environment settings (pydantic-settings)
protocols       NativeConnection protocol for the engine binding
adapters        Connector, Session, StatementHandle, RowCursor
"""

from duckspine.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DuckSpineError,
    ErrorCategory,
    ErrorContext,
    ParamCountError,
    QueryError,
    StateError,
    TypeMismatchError,
    UseAfterCloseError,
    categorize_error,
    is_retryable,
)
from duckspine.core.logging import LogContext, configure_logging, get_logger
from duckspine.core.protocols import NativeConnection
from duckspine.core.settings import DuckSpineSettings, get_settings

__all__ = [
    "ConfigError",
    "DatabaseConnectionError",
    "DuckSpineError",
    "ErrorCategory",
    "ErrorContext",
    "ParamCountError",
    "QueryError",
    "StateError",
    "TypeMismatchError",
    "UseAfterCloseError",
    "categorize_error",
    "is_retryable",
    "LogContext",
    "configure_logging",
    "get_logger",
    "NativeConnection",
    "DuckSpineSettings",
    "get_settings",
]
