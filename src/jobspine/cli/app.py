"""
Root Typer application for the jobspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from jobspine import __version__
from jobspine.core.logging import configure_logging
from jobspine.core.settings import get_settings

app = Typer(
    name="jobspine",
    help="jobspine - recurring cron jobs with store-reconciled timers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"jobspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="CLI log level (logs go to stderr)"),
) -> None:
    """jobspine CLI - manage jobs, check cron expressions, run the server."""
    configure_logging(level=log_level, json_format=get_settings().json_logs, stream="stderr")


@app.command("version")
def version() -> None:
    """Print the installed version."""
    typer.echo(f"jobspine {__version__}")


# ── Sub-command registration ─────────────────────────────────────────────

from jobspine.cli.cron import app as cron_app  # noqa: E402
from jobspine.cli.jobs import app as jobs_app  # noqa: E402
from jobspine.cli.serve import serve  # noqa: E402

app.add_typer(jobs_app, name="jobs", help="Job management.")
app.add_typer(cron_app, name="cron", help="Cron expression tools.")
app.command("serve")(serve)
