"""Typer CLI root application."""

import typer

from hotel_exports.core.config import get_settings
from hotel_exports.core.logging import setup_logging

app = typer.Typer(name="hotel-exports", help="Hotel and mapping data export CLI")


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all CLI commands."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir)


def _register_subcommands() -> None:
    """Register all CLI subcommand groups."""
    from hotel_exports.cli.export_cmd import export_app

    app.add_typer(export_app, name="export", help="Data export commands")


_register_subcommands()
