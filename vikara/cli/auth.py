"""`vikara connect`, `vikara status` and `vikara logout`: calendar authorization."""

from __future__ import annotations

import asyncio

import click

from vikara.cli._common import calendar_client, fail
from vikara.cli.main import cli
from vikara.config.settings import get_settings
from vikara.exceptions import CalendarError


@cli.command()
@click.option("--no-browser", is_flag=True, help="Print the consent URL without opening it.")
def connect(no_browser: bool) -> None:
    """Authorize Google Calendar access and wait until it completes."""
    settings = get_settings().calendar

    async def _connect() -> None:
        async with calendar_client(settings) as client:
            url = await client.auth_url()
            click.echo(f"Open this URL to connect Google Calendar:\n  {url}")
            if not no_browser:
                click.launch(url)
            click.echo("Waiting for authorization...")
            await client.wait_for_connection(
                timeout_s=settings.oauth_poll_timeout_s,
                interval_s=settings.oauth_poll_interval_s,
            )

    try:
        asyncio.run(_connect())
    except CalendarError as exc:
        fail(str(exc))
    click.echo("Calendar connected.")


@cli.command()
def status() -> None:
    """Show whether Google Calendar is connected."""
    settings = get_settings().calendar

    async def _status() -> bool:
        async with calendar_client(settings) as client:
            return (await client.auth_status()).connected

    try:
        connected = asyncio.run(_status())
    except CalendarError as exc:
        fail(str(exc))
    click.echo("Calendar: connected" if connected else "Calendar: not connected")


@cli.command()
def logout() -> None:
    """Forget the stored Google Calendar token."""
    settings = get_settings().calendar

    async def _logout() -> None:
        async with calendar_client(settings) as client:
            await client.logout()

    try:
        asyncio.run(_logout())
    except CalendarError as exc:
        fail(str(exc))
    click.echo("Calendar disconnected.")
