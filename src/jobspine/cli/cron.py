"""
CLI: ``jobspine cron`` - check and preview cron expressions.
"""

from __future__ import annotations

from datetime import datetime

import typer

from jobspine.cli.utils import cli_errors, console, print_json
from jobspine.core.errors import ValidationError
from jobspine.core.scheduling.cron import CronEvaluator
from jobspine.core.timestamps import from_iso8601, to_iso8601, utc_now

app = typer.Typer(no_args_is_help=True)


@app.command("validate")
def validate(
    expression: str = typer.Argument(..., help="Cron expression (quote it)"),
) -> None:
    """Exit 0 when EXPRESSION is a valid 5- or 6-field cron expression."""
    with cli_errors():
        CronEvaluator().validate(expression)
    console.print(f"[green]valid[/green] {expression}")


@app.command("next")
def next_runs(
    expression: str = typer.Argument(..., help="Cron expression (quote it)"),
    count: int = typer.Option(5, "--count", "-n", min=1, max=100),
    timezone: str = typer.Option("UTC", "--timezone", "--tz", help="Evaluation zone"),
    after: str | None = typer.Option(None, "--after", help="ISO 8601 reference instant (default: now)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the next COUNT trigger instants (UTC)."""
    with cli_errors():
        try:
            reference: datetime = from_iso8601(after) or utc_now()
        except ValueError as exc:
            raise ValidationError(f"--after is not an ISO 8601 instant: {after!r}", field="after") from exc
        instants = CronEvaluator(timezone).upcoming(expression, reference, count=count)

    if json_out:
        print_json([to_iso8601(instant) for instant in instants])
        return
    for instant in instants:
        console.print(to_iso8601(instant))
