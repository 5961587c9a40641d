"""Shared fakes and builders for voice session tests.

Usage:
    from tests.helpers import (
        FakeConnection,
        FakeConnector,
        FakeMediaDevices,
        FakeSink,
        audio_message,
        tool_call_message,
        wait_until,
    )
"""

from __future__ import annotations

import asyncio
import base64
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from vikara._types import MediaBlob
    from vikara.session.transport import SessionConfig

SAMPLE_RATE = 16000
OUTPUT_RATE = 24000

_END = object()


def make_tone(
    n_samples: int = 4096, amplitude: float = 0.5, rate: int = SAMPLE_RATE
) -> np.ndarray:
    """440Hz sine as float32."""
    t = np.arange(n_samples, dtype=np.float32) / rate
    return (amplitude * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)


def pcm_bytes(n_samples: int, value: int = 1000) -> bytes:
    return np.full(n_samples, value, dtype="<i2").tobytes()


def audio_message(pcm: bytes, rate: int = OUTPUT_RATE) -> dict[str, Any]:
    """A serverContent message with one inline audio part (JSON wire shape)."""
    return {
        "serverContent": {
            "modelTurn": {
                "parts": [
                    {
                        "inlineData": {
                            "mimeType": f"audio/pcm;rate={rate}",
                            "data": base64.b64encode(pcm).decode("ascii"),
                        }
                    }
                ]
            }
        }
    }


def tool_call_message(*calls: tuple[str, str, dict[str, Any]]) -> dict[str, Any]:
    """A toolCall message from ``(id, name, args)`` triples."""
    return {
        "toolCall": {
            "functionCalls": [{"id": cid, "name": name, "args": args} for cid, name, args in calls]
        }
    }


def interrupted_message() -> dict[str, Any]:
    return {"serverContent": {"interrupted": True}}


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Realtime model fakes
# ---------------------------------------------------------------------------


class FakeConnection:
    """In-memory LiveConnection. Feed messages with push(); end() closes the stream."""

    def __init__(self, messages: list[Any] | None = None) -> None:
        self.sent_media: list[MediaBlob] = []
        self.tool_responses: list[tuple[str, str, dict[str, Any]]] = []
        self.close_calls = 0
        self.send_error: Exception | None = None
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()
        for message in messages or []:
            self._incoming.put_nowait(message)

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def push(self, message: Any) -> None:
        self._incoming.put_nowait(message)

    def end(self) -> None:
        self._incoming.put_nowait(_END)

    def fail(self, exc: Exception) -> None:
        self._incoming.put_nowait(exc)

    async def send_media(self, blob: MediaBlob) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent_media.append(blob)

    async def send_tool_response(
        self, invocation_id: str, name: str, response: dict[str, Any]
    ) -> None:
        self.tool_responses.append((invocation_id, name, response))

    async def receive(self) -> AsyncIterator[Any]:
        while True:
            item = await self._incoming.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.close_calls += 1


class FakeConnector:
    """LiveConnector returning one FakeConnection, or raising ``error``."""

    def __init__(
        self,
        connection: FakeConnection | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.connection = connection or FakeConnection()
        self.error = error
        self.delay = delay
        self.configs: list[SessionConfig] = []

    async def connect(self, config: SessionConfig) -> FakeConnection:
        self.configs.append(config)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.connection


# ---------------------------------------------------------------------------
# Device fakes
# ---------------------------------------------------------------------------


class FakeSource:
    def __init__(self, start: float, duration: float) -> None:
        self.start = start
        self.duration = duration
        self.stopped = False

    @property
    def end_time(self) -> float:
        return self.start + self.duration

    def stop(self) -> None:
        self.stopped = True


class FakeSink:
    """AudioSink with a manually advanced clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now
        self.sources: list[FakeSource] = []
        self.close_calls = 0

    @property
    def current_time(self) -> float:
        return self.now

    def play_at(self, samples: np.ndarray, sample_rate: int, when: float) -> FakeSource:
        source = FakeSource(when, len(samples) / sample_rate)
        self.sources.append(source)
        return source

    def close(self) -> None:
        self.close_calls += 1


class FakeMicrophone:
    def __init__(self) -> None:
        self.on_window: Callable[[np.ndarray], None] | None = None
        self.close_calls = 0

    @property
    def started(self) -> bool:
        return self.on_window is not None

    def start(self, on_window: Callable[[np.ndarray], None]) -> None:
        self.on_window = on_window

    def emit(self, samples: np.ndarray) -> None:
        assert self.on_window is not None
        self.on_window(samples)

    def close(self) -> None:
        self.close_calls += 1


class FakeCamera:
    def __init__(self, frame: bytes | None = b"\xff\xd8fake-jpeg") -> None:
        self.frame = frame
        self.reads = 0
        self.close_calls = 0

    def read_jpeg(self) -> bytes | None:
        self.reads += 1
        return self.frame

    def close(self) -> None:
        self.close_calls += 1


class FakeMediaDevices:
    """MediaDevices handing out fakes; ``*_error`` makes that device fail to open."""

    def __init__(
        self,
        microphone_error: Exception | None = None,
        camera_error: Exception | None = None,
        speaker_error: Exception | None = None,
    ) -> None:
        self.microphone = FakeMicrophone()
        self.camera = FakeCamera()
        self.speaker = FakeSink()
        self._microphone_error = microphone_error
        self._camera_error = camera_error
        self._speaker_error = speaker_error
        self.opened: list[str] = []

    def open_microphone(self, sample_rate: int, block_size: int) -> FakeMicrophone:
        if self._microphone_error is not None:
            raise self._microphone_error
        self.opened.append("microphone")
        return self.microphone

    def open_camera(self) -> FakeCamera:
        if self._camera_error is not None:
            raise self._camera_error
        self.opened.append("camera")
        return self.camera

    def open_speaker(self, sample_rate: int) -> FakeSink:
        if self._speaker_error is not None:
            raise self._speaker_error
        self.opened.append("speaker")
        return self.speaker
