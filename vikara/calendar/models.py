"""Pydantic models for the calendar service wire format.

Field names are snake_case in Python and camelCase on the wire
(``attendeeEmail``, ``startIso``...). Dump with ``by_alias=True``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def parse_offset_datetime(value: str, field_name: str) -> datetime:
    """Parse an ISO-8601 timestamp that must carry an explicit UTC offset.

    Raises:
        ValueError: If the value does not parse or has no offset.
    """
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        msg = f"Invalid timestamp for {field_name}: {value!r} is not ISO-8601"
        raise ValueError(msg) from exc
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        msg = f"Invalid timestamp for {field_name}: {value!r} must include a UTC offset"
        raise ValueError(msg)
    return parsed


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AuthStatus(_WireModel):
    connected: bool = False


class BusyInterval(_WireModel):
    start: str
    end: str


class FreeBusyRequest(_WireModel):
    time_min: str = Field(alias="timeMin", min_length=1)
    time_max: str = Field(alias="timeMax", min_length=1)

    @model_validator(mode="after")
    def _ordered(self) -> FreeBusyRequest:
        start = parse_offset_datetime(self.time_min, "timeMin")
        end = parse_offset_datetime(self.time_max, "timeMax")
        if end <= start:
            msg = "timeMax must be after timeMin"
            raise ValueError(msg)
        return self


class FreeBusyResult(_WireModel):
    is_free: bool = Field(alias="isFree")
    busy: list[BusyInterval] = Field(default_factory=list)
    note: str | None = None


class ScheduleRequest(_WireModel):
    """A booking request. All four core fields are required and validated."""

    title: str = Field(min_length=1)
    attendee_email: str = Field(alias="attendeeEmail", min_length=3)
    attendee_name: str | None = Field(default=None, alias="attendeeName")
    start_iso: str = Field(alias="startIso")
    end_iso: str = Field(alias="endIso")
    timezone: str | None = None
    description: str | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "title must not be blank"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _valid_window(self) -> ScheduleRequest:
        start = parse_offset_datetime(self.start_iso, "startIso")
        end = parse_offset_datetime(self.end_iso, "endIso")
        if end <= start:
            msg = "endIso must be after startIso"
            raise ValueError(msg)
        return self

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ScheduleResult(_WireModel):
    """Outcome of a booking: success, or a conflict with the busy intervals.

    A conflict is not an error; callers should offer another slot.
    """

    ok: bool
    event_id: str | None = Field(default=None, alias="eventId")
    html_link: str | None = Field(default=None, alias="htmlLink")
    meet_link: str | None = Field(default=None, alias="meetLink")
    reason: Literal["conflict"] | None = None
    busy: list[BusyInterval] = Field(default_factory=list)
    note: str | None = None

    @property
    def is_conflict(self) -> bool:
        return not self.ok and self.reason == "conflict"

    def to_wire(self) -> dict[str, Any]:
        if self.is_conflict:
            return {
                "ok": False,
                "reason": "conflict",
                "busy": [b.model_dump() for b in self.busy],
            }
        if self.note is not None:
            return {"ok": self.ok, "note": self.note}
        return {
            "ok": self.ok,
            "eventId": self.event_id or "",
            "htmlLink": self.html_link,
            "meetLink": self.meet_link,
        }


class CalendarEvent(_WireModel):
    """Read-only copy of a calendar event, valid as of the last fetch."""

    id: str
    title: str = ""
    start: str = ""
    end: str = ""
    html_link: str | None = Field(default=None, alias="htmlLink")
    meet_link: str | None = Field(default=None, alias="meetLink")
    attendees: list[str] = Field(default_factory=list)

    @classmethod
    def from_google(cls, item: dict[str, Any]) -> CalendarEvent:
        """Build from a Google Calendar ``events`` resource."""
        start = item.get("start") or {}
        end = item.get("end") or {}
        return cls(
            id=str(item.get("id", "")),
            title=item.get("summary") or "(no title)",
            start=start.get("dateTime") or start.get("date") or "",
            end=end.get("dateTime") or end.get("date") or "",
            html_link=item.get("htmlLink"),
            meet_link=extract_meet_link(item),
            attendees=[a["email"] for a in item.get("attendees") or [] if a.get("email")],
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def extract_meet_link(event: dict[str, Any] | None) -> str | None:
    """Return the Meet URL from ``hangoutLink`` or the video entry point."""
    if not event:
        return None
    direct = event.get("hangoutLink")
    if isinstance(direct, str) and direct.startswith("http"):
        return direct
    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
    for entry in entry_points:
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return str(entry["uri"])
    return None
