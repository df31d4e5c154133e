"""
CLI: ``jobspine serve`` - start the API server with the scheduler attached.
"""

from __future__ import annotations

import typer
import uvicorn

from jobspine.cli.utils import console
from jobspine.core.logging import configure_logging
from jobspine.core.settings import get_settings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
) -> None:
    """Start the jobspine REST API and scheduler."""
    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    console.print(f"[bold green]Starting jobspine[/bold green] on {host}:{port}")
    # One worker: a single scheduling authority per deployment
    uvicorn.run(
        "jobspine.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=1,
        log_level=settings.log_level.lower(),
    )
