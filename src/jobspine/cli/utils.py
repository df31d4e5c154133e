"""
CLI utility helpers - store access, error reporting and output formatting.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jobspine.core.errors import JobSpineError
from jobspine.core.settings import get_settings
from jobspine.jobs.models import Job
from jobspine.jobs.repository import open_store
from jobspine.jobs.service import JobService
from jobspine.jobs.store import JobStore

console = Console()
err_console = Console(stderr=True)

DEFAULT_DATABASE = "jobspine.db"


# ── Store helpers ────────────────────────────────────────────────────────


def resolve_database(database: str | None) -> str:
    """Explicit ``--database``, then ``JOBSPINE_DATABASE_PATH``, then ``./jobspine.db``."""
    return database or get_settings().database_path or DEFAULT_DATABASE


def open_job_store(database: str | None = None) -> JobStore:
    return open_store(resolve_database(database))


def make_service(database: str | None = None) -> JobService:
    """A scheduler-less service; a running server picks changes up on discovery."""
    return JobService(open_job_store(database))


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn jobspine errors into a red message and exit code 1."""
    try:
        yield
    except JobSpineError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({type(exc).__name__}): {escape(exc.message)}")
        raise typer.Exit(code=1) from exc


# ── Output helpers ───────────────────────────────────────────────────────

_TABLE_COLUMNS = ("id", "name", "type", "cron_schedule", "status", "next_run", "last_run")


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def output_jobs(jobs: list[Job], *, total: int | None = None, as_json: bool = False) -> None:
    if as_json:
        print_json({"items": [job.to_dict() for job in jobs], "total": total})
        return

    if not jobs:
        console.print("[dim]No jobs.[/dim]")
        return

    table = Table(title="Jobs", show_lines=False, pad_edge=False)
    for column in _TABLE_COLUMNS:
        table.add_column(column, overflow="fold")
    for job in jobs:
        row = job.to_dict()
        table.add_row(*(str(row[column] or "") for column in _TABLE_COLUMNS))
    console.print(table)

    if total is not None:
        console.print(f"\n[dim]Showing {len(jobs)} of {total}[/dim]")


def output_dict(data: dict[str, Any], *, title: str = "", as_json: bool = False) -> None:
    """Render a single dict as key-value pairs."""
    if as_json:
        print_json(data)
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for key, value in data.items():
        console.print(f"  [cyan]{key}[/cyan]: {escape(str(value))}")
