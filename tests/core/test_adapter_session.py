"""Tests for ``duckspine.core.adapters.session`` — Session."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from duckspine.core.adapters import Connector, TransactionState
from duckspine.core.errors import ParamCountError, QueryError, StateError, UseAfterCloseError

USERS_DDL = "CREATE TABLE users(name VARCHAR, age INTEGER, height DOUBLE, awesome BOOLEAN, bday DATE)"


class TestSessionExecute:
    def test_ddl_returns_zero(self, session):
        assert session.execute(USERS_DDL) == 0

    def test_insert_returns_count(self, session):
        session.execute("CREATE TABLE t(i INTEGER)")
        assert session.execute("INSERT INTO t VALUES (1), (2), (3)") == 3

    def test_update_and_delete_counts(self, users):
        assert users.execute("UPDATE users SET age = age + 1 WHERE awesome = ?", [True]) == 2
        assert users.execute("DELETE FROM users WHERE name = ?", ["marc"]) == 1
        assert users.execute("DELETE FROM users WHERE name = ?", ["nobody"]) == 0

    def test_multi_statement_sums_counts(self, session):
        affected = session.execute(
            "CREATE TABLE t(i INTEGER); INSERT INTO t VALUES (1); INSERT INTO t VALUES (2), (3);"
        )
        assert affected == 3
        assert session.query_value("SELECT count(*) FROM t") == 3

    def test_multi_statement_pragmas(self, session):
        assert session.execute("PRAGMA enable_progress_bar; PRAGMA disable_print_progress_bar;") == 0

    def test_multi_statement_with_params_rejected(self, session):
        with pytest.raises(QueryError, match="one statement at a time"):
            session.execute("SELECT ?; SELECT ?", [1, 2])

    def test_select_through_execute_returns_zero(self, session):
        assert session.execute("SELECT 1") == 0

    def test_engine_error_surfaces_verbatim(self, session):
        with pytest.raises(QueryError) as exc_info:
            session.execute("INSERT INTO missing VALUES (1)")
        err = exc_info.value
        assert "missing" in err.message
        assert err.context.operation == "execute"
        assert err.context.session_id == session.session_id
        assert err.context.metadata["engine_error"] == "CatalogException"
        assert err.__cause__ is not None

    def test_syntax_error_is_query_error(self, session):
        with pytest.raises(QueryError):
            session.execute("CREAT TABLE t(i INTEGER)")

    def test_transaction_text_rejected(self, session):
        with pytest.raises(StateError):
            session.execute("BEGIN TRANSACTION")
        assert session.transaction_state is TransactionState.NONE


class TestSessionQuery:
    def test_query_rows(self, users):
        rows = users.query("SELECT name, age FROM users ORDER BY age").fetchall()
        assert rows == [("macgyver", 70), ("marc", 99)]

    def test_query_params_left_to_right(self, users):
        row = users.query_row("SELECT name FROM users WHERE name = ? AND age > ?", ["marc", 30])
        assert row == ("marc",)

    def test_query_row_none_when_empty(self, users):
        assert users.query_row("SELECT * FROM users WHERE age > ?", [1000]) is None

    def test_query_value(self, users):
        assert users.query_value("SELECT max(age) FROM users") == 99
        assert users.query_value("SELECT name FROM users WHERE age < 0") is None

    def test_missing_table_is_query_error(self, session):
        with pytest.raises(QueryError):
            session.query("SELECT * FROM nope")
        assert session.connector.resources.live("statement") == 0

    def test_param_count_mismatch_keeps_session_usable(self, users):
        with pytest.raises(ParamCountError) as exc_info:
            users.query("SELECT * FROM users WHERE name = ?", ["marc", "extra"])
        assert exc_info.value.expected == 1
        assert exc_info.value.received == 2
        assert users.connector.resources.live("statement") == 0
        assert users.query_value("SELECT count(*) FROM users") == 2

    def test_too_few_params(self, users):
        with pytest.raises(ParamCountError):
            users.execute("DELETE FROM users WHERE name = ? AND age = ?", ["marc"])

    def test_params_must_be_sequence(self, users):
        with pytest.raises(TypeError):
            users.query("SELECT * FROM users WHERE name = ?", "marc")

    def test_none_params_mean_no_params(self, session):
        assert session.query_value("SELECT 5", None) == 5


class TestSessionTransactions:
    def test_begin_sets_active(self, session):
        session.begin_transaction()
        assert session.transaction_state is TransactionState.ACTIVE
        assert session.in_transaction is True
        session.rollback()
        assert session.transaction_state is TransactionState.NONE

    def test_begin_twice_is_state_error(self, session):
        session.begin_transaction()
        with pytest.raises(StateError):
            session.begin_transaction()
        session.rollback()

    def test_commit_without_transaction(self, session):
        with pytest.raises(StateError):
            session.commit()

    def test_rollback_without_transaction(self, session):
        with pytest.raises(StateError):
            session.rollback()

    def test_commit_persists(self, users):
        users.begin_transaction()
        users.execute("INSERT INTO users VALUES ('gru', 25, 1.25, false, '1996-04-03')")
        users.commit()
        assert users.query_value("SELECT count(*) FROM users WHERE name = ?", ["gru"]) == 1

    def test_rollback_isolation_same_session(self, users):
        users.begin_transaction()
        users.execute("INSERT INTO users VALUES ('gru', 25, 1.25, false, '1996-04-03')")
        assert users.query_value("SELECT count(*) FROM users WHERE name = ?", ["gru"]) == 1
        users.rollback()
        assert users.query_value("SELECT count(*) FROM users WHERE name = ?", ["gru"]) == 0

    def test_rollback_isolation_fresh_session(self, users):
        users.begin_transaction()
        users.execute("INSERT INTO users VALUES ('gru', 25, 1.25, false, '1996-04-03')")
        users.rollback()
        with users.connector.new_session() as fresh:
            assert fresh.query_value("SELECT count(*) FROM users WHERE name = ?", ["gru"]) == 0

    def test_uncommitted_invisible_to_other_session(self, users):
        with users.connector.new_session() as other:
            users.begin_transaction()
            users.execute("DELETE FROM users")
            assert other.query_value("SELECT count(*) FROM users") == 2
            users.commit()
            assert other.query_value("SELECT count(*) FROM users") == 0

    def test_transaction_context_commits(self, users):
        with users.transaction():
            users.execute("DELETE FROM users WHERE name = ?", ["marc"])
        assert users.transaction_state is TransactionState.NONE
        assert users.query_value("SELECT count(*) FROM users") == 1

    def test_transaction_context_rolls_back_on_error(self, users):
        with pytest.raises(RuntimeError):
            with users.transaction():
                users.execute("DELETE FROM users")
                raise RuntimeError("abort")
        assert users.transaction_state is TransactionState.NONE
        assert users.query_value("SELECT count(*) FROM users") == 2

    def test_transaction_logs(self, session):
        with capture_logs() as logs:
            session.begin_transaction()
            session.commit()
        events = [entry["event"] for entry in logs]
        assert events == ["transaction_begin", "transaction_commit"]


class TestSessionClose:
    def test_close_idempotent(self, connector):
        session = connector.new_session()
        session.close()
        session.close()
        assert session.closed is True

    def test_use_after_close(self, connector):
        session = connector.new_session()
        session.close()
        with pytest.raises(UseAfterCloseError):
            session.execute("SELECT 1")
        with pytest.raises(UseAfterCloseError):
            session.query("SELECT 1")
        with pytest.raises(UseAfterCloseError):
            session.prepare("SELECT 1")
        with pytest.raises(UseAfterCloseError):
            session.begin_transaction()

    def test_close_rolls_back_active_transaction(self, users):
        connector = users.connector
        users.begin_transaction()
        users.execute("DELETE FROM users")
        users.close()
        with connector.new_session() as fresh:
            assert fresh.query_value("SELECT count(*) FROM users") == 2

    def test_close_releases_owned_resources(self, connector):
        session = connector.new_session()
        stmt = session.prepare("SELECT * FROM range(5)")
        cursor = stmt.bind_and_execute()
        assert connector.resources.snapshot() == {"session": 1, "statement": 1, "cursor": 1}
        session.close()
        assert stmt.closed is True
        assert cursor.closed is True
        assert connector.resources.total() == 0

    def test_close_logs_event(self, connector):
        session = connector.new_session()
        with capture_logs() as logs:
            session.close()
        assert {"event": "session_closed", "session_id": session.session_id, "log_level": "info"} in logs

    def test_context_manager(self, connector):
        with connector.new_session() as session:
            assert session.closed is False
        assert session.closed is True


class TestSessionStreaming:
    def test_other_statement_detaches_open_cursor(self):
        with Connector.open(fetch_size=2) as small, small.new_session() as session:
            cursor = session.query("SELECT i FROM range(6) t(i) ORDER BY i")
            assert cursor.fetchone() == (0,)
            session.execute("CREATE TABLE t(i INTEGER)")
            assert [row[0] for row in cursor] == [1, 2, 3, 4, 5]

    def test_interleaved_cursors(self, users):
        names = users.query("SELECT name FROM users ORDER BY name")
        ages = users.query("SELECT age FROM users ORDER BY age")
        assert [r[0] for r in names] == ["macgyver", "marc"]
        assert [r[0] for r in ages] == [70, 99]

