"""
CLI: ``jobspine jobs`` - job CRUD and lifecycle commands.

Commands operate on the SQLite store directly. A server sharing the same
database applies the changes on its next discovery pass.
"""

from __future__ import annotations

import asyncio
import json

import typer

from jobspine.cli.utils import cli_errors, console, make_service, output_dict, output_jobs
from jobspine.core.enums import JobStatus
from jobspine.core.errors import ValidationError
from jobspine.core.scheduling.service import SchedulerCoordinator
from jobspine.core.settings import get_settings
from jobspine.jobs.service import JobService

app = typer.Typer(no_args_is_help=True)

DatabaseOption = typer.Option(None, "--database", "-d", help="SQLite job store path")
JsonOption = typer.Option(False, "--json", help="Emit JSON")


@app.command("list")
def list_jobs(
    status: JobStatus | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    job_type: str | None = typer.Option(None, "--type", "-t", help="Filter by job type"),
    limit: int = typer.Option(100, "--limit", min=1, max=1000),
    offset: int = typer.Option(0, "--offset", min=0),
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """List jobs, newest first."""
    with cli_errors():
        jobs, total = make_service(database).list_jobs(
            status=status, type=job_type, limit=limit, offset=offset
        )
    output_jobs(jobs, total=total, as_json=json_out)


@app.command("show")
def show_job(
    job_id: str = typer.Argument(..., help="Job ID"),
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Show one job."""
    with cli_errors():
        job = make_service(database).get_job(job_id)
    output_dict(job.to_dict(), title=f"Job: {job_id}", as_json=json_out)


@app.command("create")
def create_job(
    name: str = typer.Option(..., "--name", "-n", help="Job name"),
    cron: str = typer.Option(..., "--cron", "-c", help="5- or 6-field cron expression"),
    job_type: str = typer.Option(..., "--type", "-t", help="Job type (email, report, ...)"),
    description: str | None = typer.Option(None, "--description"),
    data: str | None = typer.Option(None, "--data", help="JSON object passed to the handler"),
    paused: bool = typer.Option(False, "--paused", help="Create in paused state"),
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Create a job."""
    with cli_errors():
        try:
            payload = json.loads(data) if data else {}
        except json.JSONDecodeError as exc:
            raise ValidationError(f"--data is not valid JSON: {exc.msg}", field="data") from exc

        job = make_service(database).create_job(
            {
                "name": name,
                "cron_schedule": cron,
                "type": job_type,
                "description": description,
                "data": payload,
                "status": JobStatus.PAUSED.value if paused else JobStatus.ACTIVE.value,
            }
        )
    output_dict(job.to_dict(), title="Job Created", as_json=json_out)


@app.command("pause")
def pause_job(
    job_id: str = typer.Argument(..., help="Job ID"),
    database: str | None = DatabaseOption,
) -> None:
    """Pause a job; its timer is removed on the next discovery pass."""
    with cli_errors():
        make_service(database).pause_job(job_id)
    console.print(f"[yellow]Paused[/yellow] {job_id}")


@app.command("resume")
def resume_job(
    job_id: str = typer.Argument(..., help="Job ID"),
    database: str | None = DatabaseOption,
) -> None:
    """Reactivate a paused or failed job."""
    with cli_errors():
        make_service(database).resume_job(job_id)
    console.print(f"[green]Resumed[/green] {job_id}")


@app.command("delete")
def delete_job(
    job_id: str = typer.Argument(..., help="Job ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    database: str | None = DatabaseOption,
) -> None:
    """Delete a job."""
    if not yes:
        typer.confirm(f"Delete job {job_id}?", abort=True)
    with cli_errors():
        make_service(database).delete_job(job_id)
    console.print(f"[red]Deleted[/red] {job_id}")


@app.command("run")
def run_job(
    job_id: str = typer.Argument(..., help="Job ID"),
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Run a job once, now, in this process."""
    with cli_errors():
        service = make_service(database)
        coordinator = SchedulerCoordinator.from_settings(service.store, get_settings())
        try:
            result = asyncio.run(JobService(service.store, coordinator).run_job_now(job_id))
        finally:
            coordinator.shutdown(grace_seconds=0)
    output_dict(result.to_dict(), title=f"Run: {job_id}", as_json=json_out)
    if not result.succeeded:
        raise typer.Exit(code=1)
