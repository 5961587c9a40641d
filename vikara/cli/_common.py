"""Helpers shared by CLI commands."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, NoReturn

import click

from vikara.calendar.client import CalendarClient

if TYPE_CHECKING:
    from vikara.calendar.models import CalendarEvent
    from vikara.config.settings import CalendarSettings


def fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def calendar_client(settings: CalendarSettings) -> CalendarClient:
    return CalendarClient(settings.backend_url, timeout_s=settings.http_timeout_s)


def upcoming_window(days: int, now: datetime | None = None) -> tuple[str, str]:
    """``(timeMin, timeMax)`` from now to ``days`` ahead, ISO-8601 with local offset."""
    start = (now or datetime.now()).astimezone().replace(microsecond=0)
    end = start + timedelta(days=days)
    return start.isoformat(), end.isoformat()


def format_event(event: CalendarEvent) -> str:
    line = f"{event.start:<25}  {event.title}"
    if event.meet_link:
        line += f"  [{event.meet_link}]"
    return line
