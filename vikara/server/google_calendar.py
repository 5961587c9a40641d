"""Google Calendar v3 over httpx.

freeBusy for availability, events.insert with a Meet conference request
for bookings, events.list for reads. Google sometimes creates the Meet
conference asynchronously; when the insert response has no link yet the
event is re-read a few times.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from vikara.calendar.models import (
    BusyInterval,
    FreeBusyResult,
    ScheduleResult,
    extract_meet_link,
)
from vikara.exceptions import CalendarNotConnectedError, CalendarServiceError
from vikara.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from vikara.calendar.models import ScheduleRequest
    from vikara.server.google_auth import GoogleOAuth

logger = get_logger("server.google_calendar")

CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class GoogleCalendarService:
    """Calendar operations on one calendar (``primary`` by default).

    Args:
        oauth: Supplies access tokens.
        http: Shared httpx client.
        calendar_id: Target calendar.
        default_timezone: Used for event start/end when the request has none.
        meet_poll_attempts: events.get retries while waiting for the Meet link.
        meet_poll_interval_s: Delay between those retries.
        sleep: Injectable sleep (tests).
    """

    def __init__(
        self,
        oauth: GoogleOAuth,
        http: httpx.AsyncClient,
        calendar_id: str = "primary",
        default_timezone: str = "Asia/Kolkata",
        meet_poll_attempts: int = 10,
        meet_poll_interval_s: float = 0.8,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._oauth = oauth
        self._http = http
        self._calendar_id = calendar_id
        self._default_timezone = default_timezone
        self._meet_poll_attempts = meet_poll_attempts
        self._meet_poll_interval_s = meet_poll_interval_s
        self._sleep = sleep

    @property
    def _events_path(self) -> str:
        return f"/calendars/{quote(self._calendar_id, safe='')}/events"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        token = await self._oauth.access_token()
        try:
            response = await self._http.request(
                method,
                f"{CALENDAR_API}{path}",
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("google_unreachable", method=method, path=path, error=str(exc))
            msg = f"Could not reach Google Calendar: {exc}"
            raise CalendarServiceError(msg) from exc
        if response.status_code == 401:
            logger.warning("google_token_rejected", path=path)
            raise CalendarNotConnectedError
        if response.is_error:
            message = f"Google Calendar error (HTTP {response.status_code})"
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                message = str(body["error"].get("message") or message)
            logger.warning(
                "google_request_failed", method=method, path=path, status=response.status_code
            )
            raise CalendarServiceError(message, status_code=response.status_code)
        return response.json()  # type: ignore[no-any-return]

    async def free_busy(self, time_min: str, time_max: str) -> FreeBusyResult:
        data = await self._request(
            "POST",
            "/freeBusy",
            json={
                "timeMin": time_min,
                "timeMax": time_max,
                "items": [{"id": self._calendar_id}],
            },
        )
        calendar = (data.get("calendars") or {}).get(self._calendar_id) or {}
        busy = [
            BusyInterval(start=b["start"], end=b["end"]) for b in calendar.get("busy") or []
        ]
        return FreeBusyResult(is_free=not busy, busy=busy)

    async def schedule(self, request: ScheduleRequest) -> ScheduleResult:
        """Check availability, insert the event with a Meet link and invite the attendee."""
        availability = await self.free_busy(request.start_iso, request.end_iso)
        if not availability.is_free:
            logger.info("schedule_conflict", busy_count=len(availability.busy))
            return ScheduleResult(ok=False, reason="conflict", busy=availability.busy)

        timezone = request.timezone or self._default_timezone
        body = {
            "summary": request.title,
            "description": request.description or "",
            "start": {"dateTime": request.start_iso, "timeZone": timezone},
            "end": {"dateTime": request.end_iso, "timeZone": timezone},
            "attendees": [
                {
                    "email": request.attendee_email,
                    "displayName": request.attendee_name or request.attendee_email,
                }
            ],
            "conferenceData": {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        event = await self._request(
            "POST",
            self._events_path,
            params={"conferenceDataVersion": 1, "sendUpdates": "all"},
            json=body,
        )
        event_id = str(event.get("id", ""))
        meet_link = extract_meet_link(event)
        if meet_link is None and event_id:
            meet_link = await self._poll_meet_link(event_id)

        logger.info("event_created", event_id=event_id, has_meet_link=meet_link is not None)
        return ScheduleResult(
            ok=True,
            event_id=event_id,
            html_link=event.get("htmlLink"),
            meet_link=meet_link,
        )

    async def _poll_meet_link(self, event_id: str) -> str | None:
        path = f"{self._events_path}/{quote(event_id, safe='')}"
        for attempt in range(self._meet_poll_attempts):
            await self._sleep(self._meet_poll_interval_s)
            link = extract_meet_link(await self._request("GET", path))
            if link is not None:
                logger.debug("meet_link_ready", attempts=attempt + 1)
                return link
        logger.warning("meet_link_missing", event_id=event_id)
        return None

    async def list_events(self, time_min: str, time_max: str) -> list[dict[str, Any]]:
        """Raw events resources, recurring events expanded, ordered by start."""
        data = await self._request(
            "GET",
            self._events_path,
            params={
                "timeMin": time_min,
                "timeMax": time_max,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return list(data.get("items") or [])
