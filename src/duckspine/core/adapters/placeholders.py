"""Positional parameter discovery for SQL text.

The engine reports a parameter mismatch only after it has planned the
statement, and with a message that varies between releases. Scanning the
text up front lets the adapter raise :class:`ParamCountError` before the
engine is touched and keeps the session usable.

Recognized placeholders are ``?`` and numbered ``$1``, ``$2``... A
statement may not mix the two styles. Text inside string literals, quoted
identifiers, dollar-quoted bodies and comments is skipped.

Examples:
    >>> count_placeholders("SELECT * FROM users WHERE name = ? AND age > ?")
    2
    >>> count_placeholders("SELECT '?' AS literal -- what?")
    0
    >>> probe_sql("SELECT * FROM t WHERE a = ? AND b = $1")
    Traceback (most recent call last):
    ...
    duckspine.core.errors.QueryError: Cannot mix '?' and '$n' placeholders
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from duckspine.core.errors import QueryError

_DOLLAR_TAG = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)?\$")
_DOLLAR_NUMBER = re.compile(r"\$(\d+)")


@dataclass(frozen=True)
class PlaceholderScan:
    """Result of scanning one statement."""

    count: int
    spans: tuple[tuple[int, int], ...]
    style: str | None  # "qmark", "numeric" or None


def scan_placeholders(sql: str) -> PlaceholderScan:
    """Locate parameter placeholders in ``sql``."""
    spans: list[tuple[int, int]] = []
    qmarks = 0
    highest = 0
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < n else ""

        if ch == "'" or ch == '"':
            escaped = ch == "'" and i > 0 and sql[i - 1] in "eE" and not _is_word_char(sql, i - 2)
            i = _skip_quoted(sql, i, ch, backslash=escaped)
        elif ch == "-" and nxt == "-":
            end = sql.find("\n", i)
            i = n if end == -1 else end + 1
        elif ch == "/" and nxt == "*":
            end = sql.find("*/", i + 2)
            i = n if end == -1 else end + 2
        elif ch == "?":
            spans.append((i, i + 1))
            qmarks += 1
            i += 1
        elif ch == "$":
            number = _DOLLAR_NUMBER.match(sql, i)
            if number and not _is_word_char(sql, i - 1):
                spans.append(number.span())
                highest = max(highest, int(number.group(1)))
                i = number.end()
                continue
            tag = _DOLLAR_TAG.match(sql, i)
            if tag and not _is_word_char(sql, i - 1):
                end = sql.find(tag.group(0), tag.end())
                i = n if end == -1 else end + len(tag.group(0))
                continue
            i += 1
        else:
            i += 1

    if qmarks and highest:
        raise QueryError("Cannot mix '?' and '$n' placeholders").with_context(statement=sql)

    if qmarks:
        return PlaceholderScan(count=qmarks, spans=tuple(spans), style="qmark")
    if highest:
        return PlaceholderScan(count=highest, spans=tuple(spans), style="numeric")
    return PlaceholderScan(count=0, spans=(), style=None)


def count_placeholders(sql: str) -> int:
    """Number of positional parameters ``sql`` expects."""
    return scan_placeholders(sql).count


def probe_sql(sql: str) -> str:
    """Replace every placeholder with ``NULL`` so the statement can be bound
    for schema discovery without parameter values."""
    scan = scan_placeholders(sql)
    if not scan.spans:
        return sql
    parts: list[str] = []
    last = 0
    for start, end in scan.spans:
        parts.append(sql[last:start])
        parts.append("NULL")
        last = end
    parts.append(sql[last:])
    return "".join(parts)


def _skip_quoted(sql: str, start: int, quote: str, *, backslash: bool = False) -> int:
    """Index just past the literal/identifier opened at ``start``.

    A doubled quote character is an escaped quote. In ``E'...'`` strings
    (``backslash=True``) a backslash also escapes the next character.
    """
    i = start + 1
    n = len(sql)
    while i < n:
        if backslash and sql[i] == "\\":
            i += 2
            continue
        if sql[i] == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _is_word_char(sql: str, index: int) -> bool:
    return index >= 0 and (sql[index].isalnum() or sql[index] == "_")


__all__ = [
    "PlaceholderScan",
    "scan_placeholders",
    "count_placeholders",
    "probe_sql",
]
