"""Calendar endpoints: availability, booking and listing."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from vikara.calendar.models import FreeBusyRequest, ScheduleRequest
from vikara.exceptions import InvalidRequestError
from vikara.logging import get_logger
from vikara.server.dependencies import get_calendar
from vikara.server.google_calendar import GoogleCalendarService  # noqa: TC001
from vikara.tools.email import is_valid_email

router = APIRouter(prefix="/api/calendar", tags=["calendar"])

logger = get_logger("server.routes.calendar")


@router.post("/freebusy")
async def free_busy(
    body: FreeBusyRequest,
    calendar: GoogleCalendarService = Depends(get_calendar),  # noqa: B008
) -> dict[str, Any]:
    result = await calendar.free_busy(body.time_min, body.time_max)
    return result.model_dump(by_alias=True, exclude_none=True)


@router.post("/schedule")
async def schedule(
    body: ScheduleRequest,
    calendar: GoogleCalendarService = Depends(get_calendar),  # noqa: B008
) -> dict[str, Any]:
    """Book a meeting; a busy slot returns ``{ok: false, reason: "conflict", busy}``."""
    email = body.attendee_email.strip().lower()
    if not is_valid_email(email):
        raise InvalidRequestError(f"Invalid attendee email: {body.attendee_email}")
    result = await calendar.schedule(body.model_copy(update={"attendee_email": email}))
    return result.to_wire()


@router.get("/events")
async def list_events(
    time_min: str = Query(alias="timeMin", min_length=1),
    time_max: str = Query(alias="timeMax", min_length=1),
    calendar: GoogleCalendarService = Depends(get_calendar),  # noqa: B008
) -> list[dict[str, Any]]:
    try:
        FreeBusyRequest(timeMin=time_min, timeMax=time_max)
    except ValueError as exc:
        msg = "timeMin and timeMax must be ISO-8601 with offset, in order"
        raise InvalidRequestError(msg) from exc
    events = await calendar.list_events(time_min, time_max)
    logger.debug("events_listed", count=len(events))
    return events
