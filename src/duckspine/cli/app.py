"""
Root Typer application for the duckspine CLI.

Commands open an in-memory database unless ``--database`` names a file.
"""

from __future__ import annotations

import threading
import time
from functools import partial

import typer
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from typer import Typer

from duckspine.cli.demo import DEMO_INIT_STATEMENTS, run_demo
from duckspine.cli.utils import console, fail, open_connector, output_rows, parse_param
from duckspine.core.errors import DuckSpineError
from duckspine.core.logging import bind_context, clear_context, configure_logging

app = Typer(
    name="duckspine",
    help="duckspine — session adapter for the embedded DuckDB engine.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("duckspine")
        except PackageNotFoundError:
            from duckspine import __version__ as v
        typer.echo(f"duckspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Adapter log level."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON."),
) -> None:
    """duckspine CLI — run SQL, watch query progress, try the demo."""
    configure_logging(level=log_level, json_format=json_logs)
    clear_context()
    bind_context(command=ctx.invoked_subcommand)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def query(
    sql: str = typer.Argument(..., help="Query to run"),
    params: list[str] | None = typer.Option(None, "--param", "-p", help="Positional parameter (repeatable)"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database path (default: in-memory)"),
    options: list[str] | None = typer.Option(None, "--option", "-o", help="Engine option key=value"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Run a query and print its rows."""
    values = [parse_param(p) for p in params or []]
    try:
        with open_connector(database, options) as connector, connector.new_session() as session:
            with session.query(sql, values) as cursor:
                rows = cursor.fetchall()
                columns = cursor.columns
    except DuckSpineError as e:
        fail(e)
    output_rows(columns, rows, as_json=json_out)


@app.command("exec")
def exec_(
    sql: str = typer.Argument(..., help="Statement(s) to run"),
    params: list[str] | None = typer.Option(None, "--param", "-p", help="Positional parameter (repeatable)"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database path (default: in-memory)"),
    options: list[str] | None = typer.Option(None, "--option", "-o", help="Engine option key=value"),
) -> None:
    """Run statements without a result set and print the affected row count."""
    values = [parse_param(p) for p in params or []]
    try:
        with open_connector(database, options) as connector, connector.new_session() as session:
            affected = session.execute(sql, values)
    except DuckSpineError as e:
        fail(e)
    console.print(f"[green]OK[/green] {affected} rows affected")


@app.command()
def demo(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path (default: in-memory)"),
) -> None:
    """Walk through tables, parameters, transactions and prepared statements."""
    try:
        with open_connector(database, init_statements=DEMO_INIT_STATEMENTS) as connector:
            run_demo(connector, partial(console.print, soft_wrap=True))
    except DuckSpineError as e:
        fail(e)


@app.command()
def progress(
    sql: str = typer.Argument(..., help="Long-running query to watch"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database path (default: in-memory)"),
    extensions: list[str] | None = typer.Option(None, "--extension", "-e", help="Extension to load (repeatable)"),
    interval: float = typer.Option(0.05, "--interval", "-i", min=0.001, help="Polling interval in seconds"),
) -> None:
    """Run a query on a worker thread while polling its progress."""
    outcome: dict[str, object] = {}

    def worker(connector) -> None:
        try:
            with connector.new_session() as session, session.query(sql) as cursor:
                outcome["rows"] = len(cursor.fetchall())
        except DuckSpineError as e:
            outcome["error"] = e

    try:
        connector = open_connector(database, init_statements=DEMO_INIT_STATEMENTS, extensions=extensions or [])
    except DuckSpineError as e:
        fail(e)

    with connector:
        thread = threading.Thread(target=worker, args=(connector,), name="duckspine-query", daemon=True)
        with Progress(
            TextColumn("[bold]query[/bold]"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as bar:
            task = bar.add_task("query", total=1.0)
            thread.start()
            while thread.is_alive():
                bar.update(task, completed=connector.progress())
                time.sleep(interval)
            thread.join()

    error = outcome.get("error")
    if isinstance(error, DuckSpineError):
        fail(error)
    console.print(f"[green]Done[/green] {outcome.get('rows', 0)} rows")


if __name__ == "__main__":
    app()
