"""jobspine command-line interface (Typer + Rich)."""

from jobspine.cli.app import app

__all__ = ["app"]
