"""Function declarations offered to the model.

Each ToolSpec carries the JSON schema sent at connect time plus the facts
the dispatcher validates against: the fixed required-field set (in
declaration order), which fields hold an email, and which pair of fields
bounds a time interval.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from vikara._types import ToolName

_ISO_HINT = "ISO 8601 timestamp with explicit UTC offset, e.g. 2026-11-26T17:00:00+05:30"


@dataclass(frozen=True, slots=True)
class ToolSpec:
    name: ToolName
    description: str
    properties: dict[str, dict[str, str]]
    required: tuple[str, ...]
    email_fields: tuple[str, ...] = ()
    interval: tuple[str, str] | None = None

    def to_declaration(self) -> dict[str, Any]:
        """Return the ``functionDeclarations`` entry for this tool."""
        return {
            "name": self.name.value,
            "description": self.description,
            "parameters": {
                "type": "OBJECT",
                "properties": self.properties,
                "required": list(self.required),
            },
        }


CHECK_AVAILABILITY = ToolSpec(
    name=ToolName.CHECK_AVAILABILITY,
    description="Check whether the calendar is free between two times.",
    properties={
        "startIso": {"type": "STRING", "description": _ISO_HINT},
        "endIso": {"type": "STRING", "description": _ISO_HINT},
    },
    required=("startIso", "endIso"),
    interval=("startIso", "endIso"),
)

SCHEDULE_MEETING = ToolSpec(
    name=ToolName.SCHEDULE_MEETING,
    description=(
        "Book a meeting with a Google Meet link. Requires title, attendee email, "
        "startIso and endIso."
    ),
    properties={
        "title": {"type": "STRING"},
        "attendeeEmail": {"type": "STRING"},
        "attendeeName": {"type": "STRING"},
        "startIso": {"type": "STRING", "description": _ISO_HINT},
        "endIso": {"type": "STRING", "description": _ISO_HINT},
        "timezone": {"type": "STRING", "description": "IANA timezone name"},
        "description": {"type": "STRING"},
    },
    required=("title", "attendeeEmail", "startIso", "endIso"),
    email_fields=("attendeeEmail",),
    interval=("startIso", "endIso"),
)

LIST_EVENTS = ToolSpec(
    name=ToolName.LIST_EVENTS,
    description="Fetch calendar events for a specific time range.",
    properties={
        "timeMin": {"type": "STRING", "description": _ISO_HINT},
        "timeMax": {"type": "STRING", "description": _ISO_HINT},
    },
    required=("timeMin", "timeMax"),
    interval=("timeMin", "timeMax"),
)

CREATE_EVENT = ToolSpec(
    name=ToolName.CREATE_EVENT,
    description="Create a new calendar event. Requires an attendee email.",
    properties={
        "summary": {"type": "STRING"},
        "startTime": {"type": "STRING", "description": _ISO_HINT},
        "endTime": {"type": "STRING", "description": _ISO_HINT},
        "attendeeEmail": {"type": "STRING", "description": "Email of the person to invite"},
        "description": {"type": "STRING"},
    },
    required=("summary", "startTime", "endTime", "attendeeEmail"),
    email_fields=("attendeeEmail",),
    interval=("startTime", "endTime"),
)

TOOL_SPECS: dict[str, ToolSpec] = {
    spec.name.value: spec
    for spec in (CHECK_AVAILABILITY, SCHEDULE_MEETING, LIST_EVENTS, CREATE_EVENT)
}

# Voice sessions book with schedule_meeting; text chat uses the event-centric pair.
VOICE_TOOLS: tuple[ToolSpec, ...] = (CHECK_AVAILABILITY, SCHEDULE_MEETING, LIST_EVENTS)
CHAT_TOOLS: tuple[ToolSpec, ...] = (LIST_EVENTS, CREATE_EVENT, CHECK_AVAILABILITY)


def function_declarations(specs: tuple[ToolSpec, ...]) -> list[dict[str, Any]]:
    return [spec.to_declaration() for spec in specs]
