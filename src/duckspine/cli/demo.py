"""
CLI: ``duckspine demo``, a walkthrough of the adapter.

Creates a ``users`` table, inserts typed rows, runs a filtered query,
deletes everything, rolls back a transaction, and reuses prepared
statements. Every step prints one line.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable

from duckspine.core.adapters import Connector, Row, Session

DEMO_INIT_STATEMENTS = (
    "PRAGMA enable_progress_bar",
    "PRAGMA disable_print_progress_bar",
)

_USERS_DDL = "CREATE TABLE users(name VARCHAR, age INTEGER, height FLOAT, awesome BOOLEAN, bday DATE)"


def describe_user(row: Row) -> str:
    bday = row.get_date("bday")
    return (
        f"{row.get_str('name')} is {row.get_int('age')} years old, "
        f"{row.get_float('height'):.2f} tall, bday on {bday.isoformat() if bday else 'unknown'} "
        f"and has awesomeness: {str(row.get_bool('awesome')).lower()}"
    )


def run_demo(connector: Connector, emit: Callable[[str], None]) -> None:
    """Run the walkthrough on ``connector``, reporting through ``emit``."""
    if not connector.ping():
        raise RuntimeError("database did not answer ping")
    emit(f"DB opened with access mode {connector.access_mode()}")

    with connector.new_session() as session:
        session.execute(_USERS_DDL)
        session.execute("INSERT INTO users VALUES('marc', 99, 1.91, true, '1970-01-01')")
        session.execute("INSERT INTO users VALUES('macgyver', 70, 1.85, true, '1951-01-23')")

        with session.query(
            """
            SELECT name, age, height, awesome, bday
            FROM users
            WHERE (name = ? OR name = ?) AND age > ? AND awesome = ?
            """,
            ["macgyver", "marc", 30, True],
        ) as cursor:
            for row in cursor:
                emit(describe_user(row))

        deleted = session.execute("DELETE FROM users")
        emit(f"Deleted {deleted} rows")

        _transaction_step(session, emit)
        _prepared_step(session, emit)


def _transaction_step(session: Session, emit: Callable[[str], None]) -> None:
    emit("Starting transaction...")
    session.begin_transaction()
    session.execute("INSERT INTO users VALUES('gru', 25, 1.35, false, '1996-04-03')")
    if session.query_value("SELECT COUNT(*) FROM users WHERE name = ?", ["gru"]):
        emit("User Gru was inserted")

    emit("Rolling back transaction...")
    session.rollback()
    if session.query_value("SELECT COUNT(*) FROM users WHERE name = ?", ["gru"]):
        emit("Found user Gru")
    else:
        emit("Couldn't find user Gru")


def _prepared_step(session: Session, emit: Callable[[str], None]) -> None:
    with session.prepare("INSERT INTO users VALUES(?, ?, ?, ?, ?)") as insert:
        inserted = insert.execute_many(
            [
                ["Kevin", 11, 0.55, True, datetime.date(2013, 7, 6)],
                ["Bob", 12, 0.73, True, datetime.date(2012, 11, 4)],
                ["Stuart", 13, 0.66, True, datetime.date(2014, 2, 12)],
            ]
        )
    emit(f"Inserted {inserted} rows with a prepared statement")

    with session.prepare("SELECT * FROM users WHERE age > ?") as older:
        for row in older.bind_and_execute([1]):
            emit(describe_user(row))
