"""Tests for ``duckspine.core.adapters.placeholders`` — parameter discovery."""

from __future__ import annotations

import pytest

from duckspine.core.adapters.placeholders import count_placeholders, probe_sql, scan_placeholders
from duckspine.core.errors import QueryError


class TestCountPlaceholders:
    def test_no_placeholders(self):
        assert count_placeholders("SELECT 1") == 0

    def test_qmarks(self):
        sql = "SELECT * FROM users WHERE (name = ? OR name = ?) AND age > ? AND awesome = ?"
        assert count_placeholders(sql) == 4

    def test_ignores_string_literals(self):
        assert count_placeholders("SELECT '?', 'it''s ?' WHERE a = ?") == 1

    def test_ignores_quoted_identifiers(self):
        assert count_placeholders('SELECT "what?" FROM t WHERE b = ?') == 1

    def test_ignores_line_comment(self):
        assert count_placeholders("SELECT ? -- really?\n, ?") == 2

    def test_ignores_block_comment(self):
        assert count_placeholders("SELECT /* ? ? */ ?") == 1

    def test_ignores_dollar_quoted_body(self):
        assert count_placeholders("SELECT $$ ? $$, $tag$ ? $tag$, ?") == 1

    def test_escape_string_backslash_quote(self):
        sql = r"SELECT E'it\'s ?', ?"
        scan = scan_placeholders(sql)
        assert scan.count == 1
        assert scan.spans == ((len(sql) - 1, len(sql)),)

    def test_backslash_plain_in_standard_string(self):
        assert count_placeholders(r"SELECT 'C:\', ?") == 1

    def test_identifier_ending_in_e_is_not_escape_prefix(self):
        assert count_placeholders(r"SELECT name'\', ?") == 1

    def test_numbered_uses_highest(self):
        assert count_placeholders("SELECT $1, $2, $1") == 2

    def test_unterminated_literal_swallows_rest(self):
        assert count_placeholders("SELECT 'open ? ") == 0


class TestScanPlaceholders:
    def test_style_qmark(self):
        scan = scan_placeholders("SELECT ?")
        assert scan.style == "qmark"
        assert scan.spans == ((7, 8),)

    def test_style_numeric(self):
        assert scan_placeholders("SELECT $1").style == "numeric"

    def test_style_none(self):
        scan = scan_placeholders("SELECT 1")
        assert scan.style is None
        assert scan.count == 0

    def test_mixed_styles_rejected(self):
        with pytest.raises(QueryError, match="Cannot mix"):
            scan_placeholders("SELECT ? , $1")


class TestProbeSql:
    def test_replaces_with_null(self):
        assert probe_sql("SELECT * FROM t WHERE a = ? AND b > ?") == "SELECT * FROM t WHERE a = NULL AND b > NULL"

    def test_keeps_literals(self):
        assert probe_sql("SELECT '?' WHERE a = $1") == "SELECT '?' WHERE a = NULL"

    def test_unchanged_without_placeholders(self):
        sql = "SELECT name FROM users"
        assert probe_sql(sql) is sql
