"""ToolCallDispatcher: resolves model function calls against a calendar backend.

Every invocation is resolved exactly once. Validation failures, unknown
tools and backend exceptions all become a structured payload that goes
back to the model so the conversation can continue:

    {"ok": False, "error": "Missing required fields: attendeeEmail"}

Resolution order per invocation:
    1. required-field presence (blank strings count as missing)
    2. spoken-email normalization, then email shape validation
    3. ISO-8601 timestamps with offset, end after start
    4. backend call (sandbox: canned, real: calendar service)

Invocations from the same message run as independent tasks and may finish
in any order.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from vikara._types import SessionMode, ToolInvocation, ToolName, ToolPayload
from vikara.calendar.models import ScheduleRequest, parse_offset_datetime
from vikara.logging import get_logger
from vikara.tools.backends import SANDBOX_READ_NOTE
from vikara.tools.declarations import TOOL_SPECS, ToolSpec
from vikara.tools.email import REPEAT_EMAIL_MESSAGE, is_valid_email, normalize_spoken_email

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterable, Mapping

    from vikara.tools.backends import CalendarBackend

logger = get_logger("tools.dispatcher")

# reply(invocation_id, tool_name, payload)
ToolReply = Callable[[str, str, ToolPayload], None]

_INTERNAL_ERROR = "Internal error while running the tool"


def missing_fields(spec: ToolSpec, args: Mapping[str, Any]) -> list[str]:
    """Required fields that are absent, None or blank, in declaration order."""
    missing = []
    for name in spec.required:
        value = args.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def _interval_error(args: Mapping[str, Any], start_field: str, end_field: str) -> str | None:
    try:
        start = parse_offset_datetime(str(args[start_field]), start_field)
        end = parse_offset_datetime(str(args[end_field]), end_field)
    except ValueError as exc:
        return str(exc)
    if end <= start:
        return f"{end_field} must be after {start_field}"
    return None


def _optional(args: Mapping[str, Any], name: str) -> str | None:
    value = args.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Tool handlers
# ---------------------------------------------------------------------------


async def _handle_check_availability(
    backend: CalendarBackend, args: Mapping[str, Any]
) -> ToolPayload:
    result = await backend.free_busy(str(args["startIso"]), str(args["endIso"]))
    payload: ToolPayload = {
        "ok": True,
        "isFree": result.is_free,
        "busy": [b.model_dump() for b in result.busy],
    }
    if result.note:
        payload["note"] = result.note
    return payload


async def _handle_list_events(backend: CalendarBackend, args: Mapping[str, Any]) -> ToolPayload:
    events = await backend.list_events(str(args["timeMin"]), str(args["timeMax"]))
    payload: ToolPayload = {
        "ok": True,
        "count": len(events),
        "events": [event.to_wire() for event in events],
    }
    if backend.mode is SessionMode.SANDBOX:
        payload["note"] = SANDBOX_READ_NOTE
    return payload


async def _handle_schedule_meeting(
    backend: CalendarBackend, args: Mapping[str, Any]
) -> ToolPayload:
    request = ScheduleRequest(
        title=str(args["title"]).strip(),
        attendee_email=str(args["attendeeEmail"]),
        attendee_name=_optional(args, "attendeeName"),
        start_iso=str(args["startIso"]).strip(),
        end_iso=str(args["endIso"]).strip(),
        timezone=_optional(args, "timezone"),
        description=_optional(args, "description"),
    )
    result = await backend.schedule(request)
    return result.to_wire()


async def _handle_create_event(backend: CalendarBackend, args: Mapping[str, Any]) -> ToolPayload:
    request = ScheduleRequest(
        title=str(args["summary"]).strip(),
        attendee_email=str(args["attendeeEmail"]),
        start_iso=str(args["startTime"]).strip(),
        end_iso=str(args["endTime"]).strip(),
        description=_optional(args, "description"),
    )
    result = await backend.schedule(request)
    return result.to_wire()


# Dispatch table: tool name -> handler
_TOOL_HANDLERS: dict[
    ToolName,
    Callable[[CalendarBackend, Mapping[str, Any]], Awaitable[ToolPayload]],
] = {
    ToolName.CHECK_AVAILABILITY: _handle_check_availability,
    ToolName.LIST_EVENTS: _handle_list_events,
    ToolName.SCHEDULE_MEETING: _handle_schedule_meeting,
    ToolName.CREATE_EVENT: _handle_create_event,
}


class ToolCallDispatcher:
    """Validates and runs tool invocations against one CalendarBackend.

    The backend (sandbox or live) is fixed for the dispatcher's lifetime.

    Args:
        backend: Calendar backend selected at session configuration time.
        clock: Monotonic clock used for latency logging (injectable for tests).
    """

    def __init__(
        self,
        backend: CalendarBackend,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._backend = backend
        self._clock = clock or time.monotonic
        self._tasks: set[asyncio.Task[ToolPayload]] = set()

    @property
    def mode(self) -> SessionMode:
        return self._backend.mode

    @property
    def pending(self) -> int:
        """Invocations submitted and not yet resolved."""
        return len(self._tasks)

    async def execute(self, invocation: ToolInvocation) -> ToolPayload:
        """Resolve one invocation to its result payload. Never raises for tool errors."""
        spec = TOOL_SPECS.get(invocation.name)
        if spec is None:
            return {"ok": False, "error": f"Unknown tool: {invocation.name}"}

        args: dict[str, Any] = dict(invocation.args)

        missing = missing_fields(spec, args)
        if missing:
            return {"ok": False, "error": f"Missing required fields: {', '.join(missing)}"}

        for field_name in spec.email_fields:
            raw = str(args[field_name])
            normalized = normalize_spoken_email(raw)
            if not is_valid_email(normalized):
                return {"ok": False, "error": REPEAT_EMAIL_MESSAGE.format(value=raw)}
            args[field_name] = normalized

        if spec.interval is not None:
            error = _interval_error(args, *spec.interval)
            if error is not None:
                return {"ok": False, "error": error}

        handler = _TOOL_HANDLERS[spec.name]
        try:
            return await handler(self._backend, args)
        except Exception as exc:
            logger.warning(
                "tool_backend_error",
                invocation_id=invocation.id,
                tool=invocation.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return {"ok": False, "error": str(exc) or type(exc).__name__}

    async def dispatch(
        self,
        invocation: ToolInvocation,
        reply: ToolReply,
    ) -> ToolPayload:
        """Resolve ``invocation`` and call ``reply`` exactly once with the payload."""
        started = self._clock()
        payload: ToolPayload = {"ok": False, "error": _INTERNAL_ERROR}
        try:
            payload = await self.execute(invocation)
        except Exception:
            logger.exception("tool_dispatch_error", invocation_id=invocation.id)
        finally:
            reply(invocation.id, invocation.name, payload)
            logger.info(
                "tool_call_resolved",
                invocation_id=invocation.id,
                tool=invocation.name,
                mode=self.mode.value,
                ok=bool(payload.get("ok")),
                conflict=payload.get("reason") == "conflict",
                latency_ms=int((self._clock() - started) * 1000),
            )
        return payload

    def submit(
        self,
        invocations: Iterable[ToolInvocation],
        reply: ToolReply,
    ) -> list[asyncio.Task[ToolPayload]]:
        """Start one task per invocation and return them.

        Must be called from the event loop. Tasks are not cancelled on
        session stop; their replies are dropped by the closed transport.
        """
        tasks = []
        for invocation in invocations:
            logger.info(
                "tool_call_received",
                invocation_id=invocation.id,
                tool=invocation.name,
                arg_keys=sorted(invocation.args),
            )
            task = asyncio.create_task(
                self.dispatch(invocation, reply), name=f"tool-{invocation.id}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)
        return tasks

    async def wait_idle(self) -> None:
        """Wait for all submitted invocations to resolve."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
