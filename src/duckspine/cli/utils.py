"""
CLI utility helpers: connector setup, argument parsing and output.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from duckspine.core.adapters import ColumnInfo, Connector, ConnectorConfig, Row
from duckspine.core.errors import DuckSpineError

console = Console()
err_console = Console(stderr=True)


# ── Connector helper ─────────────────────────────────────────────────────


def open_connector(
    database: str | None = None,
    options: Sequence[str] | None = None,
    *,
    init_statements: Sequence[str] = (),
    extensions: Sequence[str] = (),
) -> Connector:
    """Open a connector.  Defaults to an in-memory database."""
    config = ConnectorConfig.from_dsn(
        database or "",
        options=parse_options(options or []),
        init_statements=tuple(init_statements),
        extensions=tuple(extensions),
    )
    return Connector.open(config)


# ── Argument parsing ─────────────────────────────────────────────────────


def parse_param(raw: str) -> Any:
    """Interpret one ``--param`` value as int, float, boolean or text."""
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered == "null":
        return None
    for convert in (int, float):
        try:
            return convert(raw)
        except ValueError:
            continue
    return raw


def parse_options(pairs: Sequence[str]) -> dict[str, str]:
    """Parse repeated ``--option key=value`` arguments."""
    options: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--option")
        options[key.strip()] = value.strip()
    return options


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: DuckSpineError) -> NoReturn:
    """Print an adapter error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {error.message}")
    raise typer.Exit(code=1)


def output_rows(
    columns: Sequence[ColumnInfo],
    rows: Sequence[Row],
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render query rows as a Rich table or JSON."""
    if as_json:
        payload = [row.as_dict() for row in rows]
        console.print_json(json.dumps(payload, default=str))
        return

    if not rows:
        console.print("[dim]No rows.[/dim]")
        return

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in columns:
        table.add_column(f"{column.name}\n[dim]{column.type_name}[/dim]", overflow="fold")
    for row in rows:
        table.add_row(*("NULL" if v is None else str(v) for v in row))
    console.print(table)
