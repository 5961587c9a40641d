"""`vikara events` command: upcoming calendar events."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click

from vikara.cli._common import calendar_client, fail, format_event, upcoming_window
from vikara.cli.main import cli
from vikara.config.settings import get_settings
from vikara.exceptions import CalendarError

if TYPE_CHECKING:
    from vikara.calendar.models import CalendarEvent


@cli.command()
@click.option("--days", default=7, type=click.IntRange(1, 90), show_default=True)
def events(days: int) -> None:
    """List events from now to DAYS ahead."""
    settings = get_settings().calendar
    time_min, time_max = upcoming_window(days)

    async def _list() -> list[CalendarEvent]:
        async with calendar_client(settings) as client:
            return await client.list_events(time_min, time_max)

    try:
        items = asyncio.run(_list())
    except CalendarError as exc:
        fail(str(exc))

    if not items:
        click.echo("No upcoming events.")
        return
    for event in items:
        click.echo(format_event(event))
