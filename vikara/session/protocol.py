"""Normalizes realtime model messages into typed results.

Accepts either SDK message objects (snake_case attributes, audio as bytes)
or raw JSON dicts (camelCase keys, audio as base64) and returns the
results the session loop fans out:

    AudioOutputResult  -> OutputPipeline
    ToolCallResult     -> ToolCallDispatcher
    InterruptedResult  -> OutputPipeline.flush (user barged in)
    TurnCompleteResult -> status only

One message may carry several results; they are returned in the order
interrupted, audio parts (in part order), tool call, turn complete.
"""

from __future__ import annotations

import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Any

from vikara._audio_constants import OUTPUT_SAMPLE_RATE
from vikara._types import MediaBlob, ToolInvocation
from vikara.logging import get_logger

logger = get_logger("session.protocol")

_DEFAULT_OUTPUT_MIME = f"audio/pcm;rate={OUTPUT_SAMPLE_RATE}"


@dataclass(frozen=True, slots=True)
class AudioOutputResult:
    """Dispatch result: one chunk of model speech."""

    blob: MediaBlob


@dataclass(frozen=True, slots=True)
class ToolCallResult:
    """Dispatch result: function calls the client must resolve."""

    invocations: tuple[ToolInvocation, ...]


@dataclass(frozen=True, slots=True)
class InterruptedResult:
    """Dispatch result: the model stopped speaking because the user talked."""


@dataclass(frozen=True, slots=True)
class TurnCompleteResult:
    """Dispatch result: the model finished its turn."""


# Union type for dispatch result
ServerResult = AudioOutputResult | ToolCallResult | InterruptedResult | TurnCompleteResult


def _field(obj: Any, snake: str, camel: str | None = None) -> Any:
    """Read ``snake`` from an SDK object or ``camel`` (or ``snake``) from a dict."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        if camel is not None and camel in obj:
            return obj[camel]
        return obj.get(snake)
    return getattr(obj, snake, None)


def _audio_parts(server_content: Any) -> list[AudioOutputResult]:
    model_turn = _field(server_content, "model_turn", "modelTurn")
    parts = _field(model_turn, "parts") or []
    results = []
    for index, part in enumerate(parts):
        inline = _field(part, "inline_data", "inlineData")
        data = _field(inline, "data")
        if not data:
            continue
        mime_type = _field(inline, "mime_type", "mimeType") or _DEFAULT_OUTPUT_MIME
        if not mime_type.startswith("audio/"):
            continue
        if isinstance(data, str):
            try:
                data = base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError):
                logger.warning("invalid_audio_payload", part_index=index)
                continue
        results.append(AudioOutputResult(blob=MediaBlob(data=bytes(data), mime_type=mime_type)))
    return results


def _tool_calls(tool_call: Any) -> ToolCallResult | None:
    calls = _field(tool_call, "function_calls", "functionCalls") or []
    invocations = []
    for call in calls:
        name = _field(call, "name")
        if not name:
            logger.warning("function_call_without_name")
            continue
        call_id = _field(call, "id") or f"call_{uuid.uuid4().hex[:8]}"
        args = _field(call, "args") or {}
        invocations.append(ToolInvocation(id=str(call_id), name=str(name), args=dict(args)))
    if not invocations:
        return None
    return ToolCallResult(invocations=tuple(invocations))


def dispatch_server_message(message: Any) -> list[ServerResult]:
    """Convert one model message into typed results.

    Returns an empty list for messages the client does not act on
    (setup acknowledgements, transcripts, usage metadata).
    """
    results: list[ServerResult] = []

    server_content = _field(message, "server_content", "serverContent")
    if server_content is not None:
        if _field(server_content, "interrupted"):
            results.append(InterruptedResult())
        results.extend(_audio_parts(server_content))

    tool_call = _field(message, "tool_call", "toolCall")
    if tool_call is not None:
        call_result = _tool_calls(tool_call)
        if call_result is not None:
            results.append(call_result)

    if server_content is not None and _field(server_content, "turn_complete", "turnComplete"):
        results.append(TurnCompleteResult())

    return results
