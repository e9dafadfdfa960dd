"""
Structured error types for the duckspine adapter.

Every failure the adapter surfaces is a ``DuckSpineError`` subclass that
carries a category, a retry flag, structured context (which call, which
statement, which session) and the chained engine exception.

Manifesto:
    - **Typed taxonomy:** One class per failure family, never bare ``Exception``
    - **Explicit retry semantics:** Only connection failures are retryable
    - **Verbatim engine messages:** The engine's text is kept, context is added
    - **Error chaining:** The native exception is preserved as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      DuckSpineError                           │
        │      (category, retryable, context, cause)                    │
        ├──────────────────────────────────────────────────────────────┤
        │  ConfigError              CONFIG       fatal at startup       │
        │  DatabaseConnectionError  CONNECTION   retryable by caller    │
        │  QueryError               QUERY        engine SQL/runtime     │
        │  ParamCountError          CONTRACT     caller violation       │
        │  TypeMismatchError        CONTRACT     caller violation       │
        │  StateError               STATE        transaction misuse     │
        │  UseAfterCloseError       LIFECYCLE    resource lifetime      │
        └──────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Swallow engine exceptions
    ✅ DO: Wrap them and pass ``cause=``

    ❌ DON'T: Retry inside the adapter
    ✅ DO: Leave retry policy to the caller (``is_retryable``)

Examples:
    >>> err = QueryError("Catalog Error: Table with name nope does not exist!")
    >>> err.with_context(operation="query", statement="SELECT * FROM nope")
    QueryError('Catalog Error: ...', category=QUERY)
    >>> err.retryable
    False

Tags:
    error-handling, exception-hierarchy, duckspine, duckdb

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Classification of adapter errors.

    Categories follow the error taxonomy of the adapter rather than the
    engine's own exception classes, so callers can route on them without
    importing ``duckdb``.
    """

    CONFIG = "CONFIG"  # Bad configuration, fatal at startup
    CONNECTION = "CONNECTION"  # Native open failure
    QUERY = "QUERY"  # SQL / runtime failure inside the engine
    CONTRACT = "CONTRACT"  # Caller broke the calling contract
    STATE = "STATE"  # Transaction misuse
    LIFECYCLE = "LIFECYCLE"  # Use of a released resource

    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        operation: Adapter call that failed (``execute``, ``query``, ``commit``...)
        statement: SQL text involved, if any
        session_id: Identifier of the owning session
        database: Data source of the connector
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    statement: str | None = None
    session_id: str | None = None
    database: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "statement", "session_id", "database"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DuckSpineError(Exception):
    """
    Base exception for all duckspine errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can
    be overridden per instance.

    Examples:
        >>> error = DuckSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DuckSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError(str(exc), cause=exc).with_context(
                operation="query",
                statement=sql,
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# STARTUP / CONNECTION
# =============================================================================


class ConfigError(DuckSpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class DatabaseConnectionError(DuckSpineError):
    """Native connection could not be opened. The caller may retry."""

    default_category = ErrorCategory.CONNECTION
    default_retryable = True


# =============================================================================
# QUERY / CONTRACT
# =============================================================================


class QueryError(DuckSpineError):
    """SQL or runtime failure reported by the engine."""

    default_category = ErrorCategory.QUERY
    default_retryable = False


class ParamCountError(DuckSpineError):
    """Number of supplied parameters does not match the placeholders."""

    default_category = ErrorCategory.CONTRACT
    default_retryable = False

    def __init__(self, expected: int, received: int, message: str | None = None, **kwargs: Any):
        self.expected = expected
        self.received = received
        super().__init__(
            message or f"Statement expects {expected} parameter(s), received {received}",
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["expected"] = self.expected
        result["received"] = self.received
        return result


class TypeMismatchError(DuckSpineError):
    """Column value read through an accessor of the wrong type."""

    default_category = ErrorCategory.CONTRACT
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        column: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.column = column
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.column:
            result["column"] = self.column
        if self.expected:
            result["expected"] = self.expected
        if self.actual:
            result["actual"] = self.actual
        return result


# =============================================================================
# STATE / LIFECYCLE
# =============================================================================


class StateError(DuckSpineError):
    """Transaction call made in the wrong transaction state."""

    default_category = ErrorCategory.STATE
    default_retryable = False


class UseAfterCloseError(DuckSpineError):
    """A session, statement or cursor was used after it was released."""

    default_category = ErrorCategory.LIFECYCLE
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, DuckSpineError):
        return error.retryable
    return False


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, DuckSpineError):
        return error.category
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.CONTRACT
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DuckSpineError",
    "ConfigError",
    "DatabaseConnectionError",
    "QueryError",
    "ParamCountError",
    "TypeMismatchError",
    "StateError",
    "UseAfterCloseError",
    "is_retryable",
    "categorize_error",
]
