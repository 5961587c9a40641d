"""Core types for Vikara.

This module defines enums, dataclasses, and type aliases used by all
components. Changes here affect the entire system.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    import numpy as np


class SessionMode(Enum):
    """How tool calls reach the calendar.

    - SANDBOX: canned results, no network traffic
    - REAL: live reads and writes through the calendar service
    """

    SANDBOX = "sandbox"
    REAL = "real"


class TransportState(Enum):
    """State of the realtime model connection.

    Valid transitions:
        IDLE -> OPENING (open() called)
        OPENING -> OPEN (handshake done)
        OPEN -> CLOSING (close() called)
        CLOSING -> CLOSED (stream released)
        OPENING | OPEN -> CLOSED (error or remote close)
        IDLE -> CLOSED (closed before open)
    """

    IDLE = "idle"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class LifecycleState(Enum):
    """State of the user-facing voice session.

    Valid transitions:
        READY -> STARTING (start requested)
        STARTING -> ACTIVE (transport open, devices wired)
        ACTIVE -> STOPPING (stop, remote close or error)
        STOPPING -> READY (teardown finished)
        STARTING | ACTIVE -> READY (error)
    """

    READY = "ready"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


class ToolName(Enum):
    """Functions the model may ask the client to run."""

    CHECK_AVAILABILITY = "check_availability"
    SCHEDULE_MEETING = "schedule_meeting"
    LIST_EVENTS = "list_events"
    CREATE_EVENT = "create_event"


ToolArgValue = str | int | float | bool | None
ToolPayload = dict[str, Any]


@dataclass(frozen=True, slots=True)
class MediaBlob:
    """One media frame as carried on the realtime stream."""

    data: bytes
    mime_type: str

    def to_wire(self) -> dict[str, str]:
        """Return the ``{data, mimeType}`` frame with base64 data."""
        return {
            "data": base64.b64encode(self.data).decode("ascii"),
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True, slots=True)
class AudioChunk:
    """Mono float32 samples with their rate and arrival position."""

    samples: np.ndarray
    sample_rate: int
    sequence: int = 0

    @property
    def duration_s(self) -> float:
        return len(self.samples) / self.sample_rate


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    """One outstanding function call from the model."""

    id: str
    name: str
    args: Mapping[str, ToolArgValue] = field(default_factory=dict)
