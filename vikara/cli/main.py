"""Root click group for the ``vikara`` command."""

from __future__ import annotations

import click

import vikara
from vikara.logging import configure_logging


@click.group()
@click.version_option(version=vikara.__version__, prog_name="vikara")
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default=None,
    help="Log format (default: VIKARA_LOG_FORMAT or console).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default=None,
    help="Log level (default: VIKARA_LOG_LEVEL or INFO).",
)
def cli(log_format: str | None, log_level: str | None) -> None:
    """Vikara - voice and chat scheduling assistant for Google Calendar."""
    configure_logging(log_format=log_format, level=log_level)
