"""Calendar service client and wire models."""

from __future__ import annotations

from vikara.calendar.client import CalendarClient
from vikara.calendar.models import (
    AuthStatus,
    BusyInterval,
    CalendarEvent,
    FreeBusyResult,
    ScheduleRequest,
    ScheduleResult,
)

__all__ = [
    "AuthStatus",
    "BusyInterval",
    "CalendarClient",
    "CalendarEvent",
    "FreeBusyResult",
    "ScheduleRequest",
    "ScheduleResult",
]
