"""Calendar tools the model can call, and their dispatcher."""

from __future__ import annotations

from vikara.tools.backends import (
    CalendarBackend,
    LiveCalendarBackend,
    SandboxCalendarBackend,
    create_backend,
)
from vikara.tools.dispatcher import ToolCallDispatcher

__all__ = [
    "CalendarBackend",
    "LiveCalendarBackend",
    "SandboxCalendarBackend",
    "ToolCallDispatcher",
    "create_backend",
]
