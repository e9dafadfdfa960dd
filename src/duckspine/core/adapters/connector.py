"""
Connector: the shared database handle.

One :class:`Connector` is created at startup from a
:class:`~duckspine.core.adapters.types.ConnectorConfig`, shared by every
thread, and closed at shutdown. It opens the engine's root database handle
once, loads extensions and validates init statements on it, then hands out
independent :class:`Session` objects, each on its own child connection.

Manifesto:
    - Fail at startup: a bad option, extension or init statement surfaces
      as ``ConfigError`` from :meth:`Connector.open`, not from the first
      query.
    - ``new_session`` is serialized; sessions themselves are single-owner.
    - ``progress`` is a lock-free read safe to poll from any thread.
    - Every native resource opened here is closed here, on every path.

Tags:
    connector, duckdb, connection-pool, progress, adapter
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from duckspine.core.errors import DuckSpineError, UseAfterCloseError
from duckspine.core.logging import get_logger

from . import native as engine
from .resources import ResourceTracker
from .session import Session
from .types import ConnectorConfig

if TYPE_CHECKING:
    from duckspine.core.protocols import NativeConnection
    from duckspine.core.settings import DuckSpineSettings

logger = get_logger(__name__)


class Connector:
    """Shared entry point to one embedded database.

    Example:
        >>> with Connector.from_dsn("") as connector:
        ...     with connector.new_session() as session:
        ...         session.query_value("SELECT 42")
        42
    """

    def __init__(self, config: ConnectorConfig, root: NativeConnection):
        self._config = config
        self._root = root
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._ids = itertools.count(1)
        self._closed = False
        self._progress_source: NativeConnection | None = None
        self._resources = ResourceTracker()

    # -- construction ------------------------------------------------------

    @classmethod
    def open(cls, config: ConnectorConfig | None = None, **kwargs: Any) -> Connector:
        """Open the database described by ``config`` (or by ``kwargs``).

        Raises:
            ConfigError: invalid configuration, unknown engine option, or a
                failing extension or init statement.
            DatabaseConnectionError: the database file cannot be opened.
        """
        if config is None:
            config = ConnectorConfig(**kwargs)
        elif kwargs:
            raise TypeError("Pass either a ConnectorConfig or keyword fields, not both")

        root = engine.open_database(config)
        try:
            engine.configure_database(root, config)
        except BaseException:
            root.close()
            raise

        logger.info(
            "connector_opened",
            database=config.target,
            options=sorted(config.options),
            extensions=list(config.extensions),
        )
        return cls(config, root)

    @classmethod
    def from_dsn(cls, dsn: str | None, **kwargs: Any) -> Connector:
        """Open from a ``path?option=value`` connection string."""
        return cls.open(ConnectorConfig.from_dsn(dsn, **kwargs))

    @classmethod
    def from_settings(cls, settings: DuckSpineSettings | None = None) -> Connector:
        """Open from ``DUCKSPINE_*`` environment settings."""
        if settings is None:
            from duckspine.core.settings import get_settings

            settings = get_settings()
        return cls.open(ConnectorConfig.from_settings(settings))

    # -- properties --------------------------------------------------------

    @property
    def config(self) -> ConnectorConfig:
        return self._config

    @property
    def resources(self) -> ResourceTracker:
        return self._resources

    @property
    def closed(self) -> bool:
        return self._closed

    def live_sessions(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    # -- sessions ----------------------------------------------------------

    def new_session(self) -> Session:
        """Open an independent session on a new native connection.

        Safe to call from many threads at once.

        Raises:
            UseAfterCloseError: the connector is closed.
            DatabaseConnectionError: the native connection cannot be created.
        """
        with self._lock:
            if self._closed:
                raise UseAfterCloseError("Connector is closed").with_context(
                    operation="new_session", database=self._config.target
                )
            child = engine.open_child(self._root)
            session_id = f"s-{next(self._ids)}"

        try:
            engine.prepare_connection(child, self._config.init_statements)
        except DuckSpineError as e:
            child.close()
            raise e.with_context(session_id=session_id, database=self._config.target)

        session = None
        with self._lock:
            if not self._closed:
                session = Session(self, child, session_id)
                self._sessions[session_id] = session
        if session is None:
            child.close()
            raise UseAfterCloseError("Connector was closed while the session was opening").with_context(
                operation="new_session", session_id=session_id, database=self._config.target
            )
        logger.info("session_opened", session_id=session_id, database=self._config.target)
        return session

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        with self.new_session() as session:
            return session.query_value("SELECT 1") == 1

    def access_mode(self) -> str:
        """Current ``access_mode`` setting (``automatic``, ``read_only``...)."""
        with self.new_session() as session:
            return str(session.query_value("SELECT current_setting('access_mode')"))

    # -- progress ----------------------------------------------------------

    def progress(self) -> float:
        """Completion fraction in ``[0, 1]`` of the most recent running query.

        ``0.0`` when nothing is running or the engine cannot tell. Never
        blocks.
        """
        source = self._progress_source
        if source is None:
            return 0.0
        return engine.query_progress(source)

    @contextmanager
    def _tracking_progress(self, native: NativeConnection) -> Iterator[None]:
        self._progress_source = native
        try:
            yield
        finally:
            if self._progress_source is native:
                self._progress_source = None

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Close every live session, then the root handle. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sessions = list(self._sessions.values())

        for session in sessions:
            try:
                session.close()
            except Exception as e:
                logger.warning("release_failed", session_id=session.session_id, resource="session", error=str(e))

        self._progress_source = None
        try:
            self._root.close()
        except Exception as e:
            logger.warning("release_failed", resource="database", database=self._config.target, error=str(e))
        logger.info("connector_closed", database=self._config.target, sessions_closed=len(sessions))

    def _forget_session(self, session: Session) -> None:
        with self._lock:
            self._sessions.pop(session.session_id, None)

    def __enter__(self) -> Connector:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._sessions)} sessions"
        return f"Connector({self._config.target!r}, {state})"


__all__ = [
    "Connector",
]
