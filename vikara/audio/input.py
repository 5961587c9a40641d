"""Input side: microphone windows and periodic camera frames.

Both forward to the transport only while it is open. Windows arrive in
capture order on the event loop (the device callback hops threads with
``call_soon_threadsafe``) and are forwarded in that order.

The loudness level is a side read computed after the window has been
queued for sending; a failing level callback never costs audio.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Protocol

from vikara._audio_constants import DEFAULT_FRAME_INTERVAL_S, FRAME_MIME, INPUT_SAMPLE_RATE
from vikara._types import MediaBlob
from vikara.codec.pcm import encode_for_transport, rms_level
from vikara.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import numpy as np

logger = get_logger("audio.input")


class MediaTarget(Protocol):
    """Where captured media goes (RealtimeSession)."""

    @property
    def is_open(self) -> bool: ...

    def send(self, blob: MediaBlob) -> None: ...


class FrameSource(Protocol):
    """A camera that can produce one JPEG on demand (blocking)."""

    def read_jpeg(self) -> bytes | None: ...

    def close(self) -> None: ...


class InputPipeline:
    """Encodes microphone windows and forwards them in order.

    Args:
        target: Transport that receives the encoded blobs.
        source_rate: Capture rate of the windows (resampled to 16kHz if different).
        on_level: Optional UI meter callback receiving a value in [0, 1].
    """

    def __init__(
        self,
        target: MediaTarget,
        source_rate: int = INPUT_SAMPLE_RATE,
        on_level: Callable[[float], None] | None = None,
    ) -> None:
        self._target = target
        self._source_rate = source_rate
        self._on_level = on_level
        self._level = 0.0
        self._forwarded = 0
        self._dropped = 0

    @property
    def level(self) -> float:
        return self._level

    @property
    def forwarded(self) -> int:
        return self._forwarded

    def push(self, samples: np.ndarray) -> None:
        """Handle one captured window."""
        if not self._target.is_open:
            self._dropped += 1
            return

        self._target.send(encode_for_transport(samples, self._source_rate))
        self._forwarded += 1

        self._level = rms_level(samples)
        if self._on_level is not None:
            try:
                self._on_level(self._level)
            except Exception:
                logger.exception("level_callback_error")

    def reset(self) -> None:
        self._level = 0.0
        if self._on_level is not None:
            with contextlib.suppress(Exception):
                self._on_level(0.0)


class CameraSampler:
    """Samples a FrameSource on a fixed period and forwards JPEG frames.

    The period (default 1s) is independent of the audio window rate; the
    model only needs coarse visual context.

    Args:
        target: Transport that receives the frames.
        source: Camera to read from (read off the event loop).
        interval_s: Seconds between frames.
        sleep: Injectable sleep (tests).
    """

    def __init__(
        self,
        target: MediaTarget,
        source: FrameSource,
        interval_s: float = DEFAULT_FRAME_INTERVAL_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval_s <= 0:
            msg = f"interval_s must be > 0, got {interval_s}"
            raise ValueError(msg)
        self._target = target
        self._source = source
        self._interval_s = interval_s
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._read: asyncio.Future[bytes | None] | None = None
        self._frames_sent = 0

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="camera-sampler")

    async def _run(self) -> None:
        while True:
            if self._target.is_open:
                # Shielded so stop() can wait for the worker thread to let go of the camera.
                self._read = asyncio.ensure_future(asyncio.to_thread(self._source.read_jpeg))
                try:
                    frame = await asyncio.shield(self._read)
                except Exception:
                    logger.warning("camera_read_failed", exc_info=True)
                    frame = None
                self._read = None
                if frame and self._target.is_open:
                    self._target.send(MediaBlob(data=frame, mime_type=FRAME_MIME))
                    self._frames_sent += 1
            await self._sleep(self._interval_s)

    async def stop(self) -> None:
        """Cancel sampling and wait for an in-flight read. Idempotent.

        The source may be closed once this returns.
        """
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        read, self._read = self._read, None
        if read is not None:
            try:
                await read
            except Exception:
                logger.warning("camera_read_failed", exc_info=True)
