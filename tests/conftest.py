"""
Shared pytest fixtures and configuration for duckspine tests.

This module provides:
- An in-memory connector that asserts no native resources leaked on teardown
- A session on that connector
- A populated ``users`` table matching the demo walkthrough

Usage:
    Fixtures are auto-discovered by pytest.

    def test_something(session):
        assert session.query_value("SELECT 1") == 1
"""

from __future__ import annotations

import datetime
import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

# Ensure duckspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from duckspine.core.adapters import Connector, Session  # noqa: E402
from duckspine.core.settings import get_settings  # noqa: E402

USERS_DDL = "CREATE TABLE users(name VARCHAR, age INTEGER, height DOUBLE, awesome BOOLEAN, bday DATE)"

USERS = [
    ("marc", 99, 1.75, True, datetime.date(1970, 1, 1)),
    ("macgyver", 70, 1.5, True, datetime.date(1951, 1, 23)),
]


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "scenario" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings / Logging Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop DUCKSPINE_* variables, the settings cache and structlog config and context around each test."""
    for key in list(os.environ):
        if key.startswith("DUCKSPINE_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Connector / Session Fixtures
# =============================================================================


@pytest.fixture
def connector() -> Generator[Connector, None, None]:
    """In-memory connector; fails the test if anything is left open."""
    conn = Connector.from_dsn("")
    yield conn
    conn.close()
    assert conn.resources.total() == 0, conn.resources.snapshot()


@pytest.fixture
def session(connector: Connector) -> Generator[Session, None, None]:
    sess = connector.new_session()
    yield sess
    sess.close()


@pytest.fixture
def users(session: Session) -> Session:
    """Session with the ``users`` table created and two rows inserted."""
    session.execute(USERS_DDL)
    with session.prepare("INSERT INTO users VALUES (?, ?, ?, ?, ?)") as insert:
        insert.execute_many(USERS)
    return session
