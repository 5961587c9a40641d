"""ChatSession: turn-based text chat with calendar tools.

Uses ``client.aio.models.generate_content`` with the chat tool set. Function
calls in a response go through the same ToolCallDispatcher as the voice
session, so sandbox/real selection and argument validation are identical.
Their payloads are sent back as function responses wrapped in
``{"result": payload}`` and the model is asked again, up to
``max_tool_rounds`` times per user message.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from google import genai
from google.genai import types

from vikara._types import ToolInvocation
from vikara.logging import get_logger
from vikara.prompts import chat_instructions, timezone_info
from vikara.tools.declarations import CHAT_TOOLS, function_declarations

if TYPE_CHECKING:
    from vikara.tools.dispatcher import ToolCallDispatcher

logger = get_logger("chat")

_FALLBACK_TEXT = "I couldn't generate a response."


@dataclass(frozen=True, slots=True)
class GroundingLink:
    title: str
    uri: str


@dataclass(frozen=True, slots=True)
class ChatReply:
    text: str
    links: tuple[GroundingLink, ...] = ()
    tool_calls: int = 0


def extract_grounding_links(response: Any) -> tuple[GroundingLink, ...]:
    """Web and Maps sources from the first candidate's grounding metadata."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ()
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    links = []
    for chunk in chunks:
        for kind in ("web", "maps"):
            source = getattr(chunk, kind, None)
            uri = getattr(source, "uri", None)
            if uri:
                links.append(GroundingLink(title=getattr(source, "title", None) or uri, uri=uri))
    return tuple(links)


def _response_text(response: Any) -> str:
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None:
        return ""
    parts = candidates[0].content.parts or []
    return "".join(part.text for part in parts if getattr(part, "text", None))


def build_chat_config(
    system_instruction: str, enable_search: bool = False
) -> types.GenerateContentConfig:
    tools = [
        types.Tool(
            function_declarations=[
                types.FunctionDeclaration.model_validate(declaration)
                for declaration in function_declarations(CHAT_TOOLS)
            ]
        )
    ]
    if enable_search:
        tools.append(types.Tool(google_search=types.GoogleSearch()))
    return types.GenerateContentConfig(system_instruction=system_instruction, tools=tools)


class ChatSession:
    """In-memory chat history plus tool resolution.

    Args:
        dispatcher: Resolves ``list_events`` / ``create_event`` calls.
        model: Gemini text model.
        api_key: Gemini API key (ignored when ``client`` is given).
        client: Pre-built ``genai.Client`` (tests pass a fake).
        max_tool_rounds: Function-call round trips allowed per message.
        timezone: IANA zone for the system instruction; empty means local.
        enable_search: Also offer Google Search grounding.
    """

    def __init__(
        self,
        dispatcher: ToolCallDispatcher,
        model: str = "gemini-2.5-flash",
        api_key: str | None = None,
        client: Any | None = None,
        max_tool_rounds: int = 4,
        timezone: str = "",
        enable_search: bool = False,
    ) -> None:
        self._dispatcher = dispatcher
        self._model = model
        self._client = client if client is not None else genai.Client(api_key=api_key)
        self._max_tool_rounds = max_tool_rounds
        self._config = build_chat_config(
            chat_instructions(timezone_info(timezone)), enable_search=enable_search
        )
        self._history: list[types.Content] = []

    @property
    def history(self) -> list[types.Content]:
        return list(self._history)

    def reset(self) -> None:
        self._history = []

    async def send(self, text: str) -> ChatReply:
        """Send one user message and return the model's final answer.

        History is only committed when the exchange completes.
        """
        contents = [*self._history, types.Content(role="user", parts=[types.Part(text=text)])]
        tool_calls = 0
        rounds = 0

        while True:
            response = await self._client.aio.models.generate_content(
                model=self._model, contents=contents, config=self._config
            )
            candidates = response.candidates or []
            if candidates and candidates[0].content is not None:
                contents.append(candidates[0].content)

            calls = response.function_calls or []
            if not calls:
                break
            if rounds >= self._max_tool_rounds:
                logger.warning("chat_tool_rounds_exhausted", rounds=rounds)
                break
            rounds += 1

            parts = []
            for call in calls:
                invocation = ToolInvocation(
                    id=call.id or f"call_{uuid.uuid4().hex[:8]}",
                    name=call.name or "",
                    args=dict(call.args or {}),
                )
                payload = await self._dispatcher.execute(invocation)
                tool_calls += 1
                logger.info(
                    "chat_tool_resolved",
                    tool=invocation.name,
                    ok=bool(payload.get("ok")),
                )
                parts.append(
                    types.Part.from_function_response(
                        name=invocation.name, response={"result": payload}
                    )
                )
            contents.append(types.Content(role="user", parts=parts))

        self._history = contents
        reply = ChatReply(
            text=_response_text(response) or _FALLBACK_TEXT,
            links=extract_grounding_links(response),
            tool_calls=tool_calls,
        )
        logger.info("chat_turn_complete", tool_calls=tool_calls, links=len(reply.links))
        return reply
