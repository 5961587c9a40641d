"""Calendar backends used by the tool-call dispatcher.

One capability, two implementations, selected once when a session is
configured:

- SandboxCalendarBackend: canned results, never touches the network.
- LiveCalendarBackend: real reads and writes through CalendarClient.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from vikara._types import SessionMode
from vikara.calendar.models import CalendarEvent, FreeBusyResult, ScheduleResult
from vikara.logging import get_logger

if TYPE_CHECKING:
    from vikara.calendar.client import CalendarClient
    from vikara.calendar.models import ScheduleRequest

logger = get_logger("tools.backends")

SANDBOX_SCHEDULE_NOTE = "Sandbox mode: Meeting simulated."
SANDBOX_READ_NOTE = "Sandbox mode: calendar not queried."


class CalendarBackend(ABC):
    """Calendar operations the dispatcher can perform."""

    mode: SessionMode

    @abstractmethod
    async def free_busy(self, time_min: str, time_max: str) -> FreeBusyResult:
        """Return busy intervals overlapping ``[time_min, time_max)``."""
        ...

    @abstractmethod
    async def schedule(self, request: ScheduleRequest) -> ScheduleResult:
        """Check availability, then insert the event.

        Returns a conflict result (not an exception) when the slot is busy.
        """
        ...

    @abstractmethod
    async def list_events(self, time_min: str, time_max: str) -> list[CalendarEvent]:
        ...


class SandboxCalendarBackend(CalendarBackend):
    """Fabricates successful results for rehearsing conversations without credentials."""

    mode = SessionMode.SANDBOX

    def __init__(self) -> None:
        self.simulated: list[ScheduleRequest] = []

    async def free_busy(self, time_min: str, time_max: str) -> FreeBusyResult:
        return FreeBusyResult(is_free=True, busy=[], note=SANDBOX_READ_NOTE)

    async def schedule(self, request: ScheduleRequest) -> ScheduleResult:
        self.simulated.append(request)
        logger.info(
            "sandbox_meeting_simulated",
            title=request.title,
            start=request.start_iso,
            end=request.end_iso,
        )
        return ScheduleResult(ok=True, note=SANDBOX_SCHEDULE_NOTE)

    async def list_events(self, time_min: str, time_max: str) -> list[CalendarEvent]:
        return []


class LiveCalendarBackend(CalendarBackend):
    """Reads and writes the organizer's calendar through the calendar server."""

    mode = SessionMode.REAL

    def __init__(self, client: CalendarClient) -> None:
        self._client = client

    async def free_busy(self, time_min: str, time_max: str) -> FreeBusyResult:
        return await self._client.free_busy(time_min, time_max)

    async def schedule(self, request: ScheduleRequest) -> ScheduleResult:
        availability = await self._client.free_busy(request.start_iso, request.end_iso)
        if not availability.is_free:
            logger.info(
                "schedule_conflict",
                start=request.start_iso,
                end=request.end_iso,
                busy_count=len(availability.busy),
            )
            return ScheduleResult(ok=False, reason="conflict", busy=availability.busy)
        return await self._client.schedule(request)

    async def list_events(self, time_min: str, time_max: str) -> list[CalendarEvent]:
        return await self._client.list_events(time_min, time_max)


def create_backend(mode: SessionMode, client: CalendarClient | None = None) -> CalendarBackend:
    """Return the backend for ``mode``.

    Raises:
        ValueError: If REAL mode is requested without a client.
    """
    if mode is SessionMode.SANDBOX:
        return SandboxCalendarBackend()
    if client is None:
        msg = "REAL mode requires a CalendarClient"
        raise ValueError(msg)
    return LiveCalendarBackend(client)
