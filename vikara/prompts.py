"""System instructions for the voice and chat assistants.

The model is told the current date, the user's timezone and its UTC offset
so it can turn "tomorrow at 5pm" into an ISO-8601 timestamp with an
explicit offset.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from vikara.logging import get_logger

logger = get_logger("prompts")


@dataclass(frozen=True, slots=True)
class TimezoneInfo:
    name: str
    offset_iso: str


def format_offset(offset: timedelta | None) -> str:
    """Format a UTC offset as ``+HH:MM`` / ``-HH:MM``."""
    total_minutes = int((offset or timedelta(0)).total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def timezone_info(name: str = "", now: datetime | None = None) -> TimezoneInfo:
    """Resolve the timezone used in prompts.

    ``name`` is an IANA zone; empty means the system local zone.
    """
    if name:
        try:
            zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("unknown_timezone", timezone=name)
        else:
            local = (now or datetime.now(zone)).astimezone(zone)
            return TimezoneInfo(name=name, offset_iso=format_offset(local.utcoffset()))

    local = (now or datetime.now()).astimezone()
    return TimezoneInfo(name=local.tzname() or "UTC", offset_iso=format_offset(local.utcoffset()))


def voice_instructions(tz: TimezoneInfo, now: datetime | None = None) -> str:
    today = (now or datetime.now()).strftime("%a %b %d %Y")
    example = f"2026-11-26T17:00:00{tz.offset_iso}"
    return f"""You are Vikara, an elite scheduling assistant.
Current Date: {today}.
User Timezone: {tz.name} (UTC Offset: {tz.offset_iso}).

CRITICAL RULES:
1. When calling 'schedule_meeting' or 'check_availability', ALWAYS convert the user's
   relative time (e.g. "tomorrow at 5pm") to a strict ISO 8601 string including the
   offset ({tz.offset_iso}). Example: {example}.
2. Check availability before booking. If a booking returns a conflict, propose another slot.
3. Read email addresses back to the user before booking.
4. Be concise and professional.
5. Stay focused on the user's schedule. Politely steer off-topic requests back.
"""


def chat_instructions(tz: TimezoneInfo, now: datetime | None = None) -> str:
    current = (now or datetime.now()).astimezone().isoformat(timespec="seconds")
    return f"""You are Vikara AI Assistant.
Current Time: {current}
User Timezone: {tz.name} (UTC Offset: {tz.offset_iso}).
If the user asks about their schedule, call 'list_events'.
If the user wants to book a meeting, ask for the attendee email if not provided,
then call 'create_event' with ISO 8601 timestamps that include the offset.
"""
