"""Gemini Live connector built on the google-genai SDK.

``client.aio.live.connect()`` is an async context manager; the connection
object enters it on connect and exits it on close. ``session.receive()``
yields the messages of ONE model turn, so ``receive()`` here loops over
turns until the peer goes away.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from google import genai
from google.genai import types

from vikara.logging import get_logger
from vikara.tools.declarations import function_declarations

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from vikara._types import MediaBlob, ToolPayload
    from vikara.session.transport import SessionConfig

logger = get_logger("live.gemini")


def build_live_config(config: SessionConfig) -> types.LiveConnectConfig:
    """Translate a SessionConfig into the SDK's LiveConnectConfig."""
    tools: list[types.Tool] = []
    if config.enable_search:
        tools.append(types.Tool(google_search=types.GoogleSearch()))
    if config.tools:
        tools.append(
            types.Tool(
                function_declarations=[
                    types.FunctionDeclaration.model_validate(declaration)
                    for declaration in function_declarations(config.tools)
                ]
            )
        )

    return types.LiveConnectConfig(
        response_modalities=[types.Modality(config.response_modality)],
        speech_config=types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.voice)
            )
        ),
        system_instruction=types.Content(parts=[types.Part(text=config.system_instruction)]),
        tools=tools or None,
    )


class GeminiLiveConnection:
    """An open Gemini Live session."""

    def __init__(self, context_manager: Any, session: Any) -> None:
        self._context_manager = context_manager
        self._session = session
        self._closed = False

    async def send_media(self, blob: MediaBlob) -> None:
        media = types.Blob(data=blob.data, mime_type=blob.mime_type)
        if blob.mime_type.startswith("image/"):
            await self._session.send_realtime_input(video=media)
        else:
            await self._session.send_realtime_input(audio=media)

    async def send_tool_response(
        self, invocation_id: str, name: str, response: ToolPayload
    ) -> None:
        await self._session.send_tool_response(
            function_responses=[
                types.FunctionResponse(id=invocation_id, name=name, response=response)
            ]
        )

    async def receive(self) -> AsyncIterator[Any]:
        while not self._closed:
            received = 0
            async for message in self._session.receive():
                received += 1
                yield message
            if received == 0:
                # An empty turn means the socket is gone.
                logger.info("live_stream_ended")
                return

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._context_manager.__aexit__(None, None, None)


class GeminiLiveConnector:
    """Opens Gemini Live sessions with one API key.

    Args:
        api_key: Gemini API key.
        client: Pre-built ``genai.Client`` (tests pass a fake).
    """

    def __init__(self, api_key: str | None = None, client: Any | None = None) -> None:
        self._client = client if client is not None else genai.Client(api_key=api_key)

    async def connect(self, config: SessionConfig) -> GeminiLiveConnection:
        context_manager = self._client.aio.live.connect(
            model=config.model,
            config=build_live_config(config),
        )
        session = await context_manager.__aenter__()
        logger.info("live_connected", model=config.model)
        return GeminiLiveConnection(context_manager, session)
