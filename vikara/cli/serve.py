"""`vikara serve` command: runs the calendar server."""

from __future__ import annotations

import click

from vikara.cli.main import cli
from vikara.config.settings import get_settings
from vikara.logging import get_logger

logger = get_logger("cli.serve")


@cli.command()
@click.option("--host", default=None, help="Bind host (default: VIKARA_HOST or 127.0.0.1).")
@click.option("--port", default=None, type=int, help="HTTP port (default: VIKARA_PORT or 8000).")
def serve(host: str | None, port: int | None) -> None:
    """Start the calendar server (OAuth + Google Calendar proxy)."""
    import uvicorn

    from vikara.server.app import create_app

    settings = get_settings().server
    bind_host = host or settings.host
    bind_port = port or settings.port

    app = create_app(settings)
    logger.info(
        "server_starting",
        host=bind_host,
        port=bind_port,
        frontend_origin=settings.frontend_origin,
        oauth_configured=bool(settings.google_client_id),
    )
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="warning")
