"""Hardware access: sounddevice microphone and speaker, OpenCV camera.

PortAudio callbacks run on their own thread. The microphone callback only
copies the block and hops to the event loop with ``call_soon_threadsafe``.
The speaker callback mixes scheduled sources by frame position; source
bookkeeping shared with that thread is guarded by a ``threading.Lock``.

sounddevice and opencv-python are optional extras (``vikara-voice[audio]``
and ``vikara-voice[vision]``).
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np

from vikara._audio_constants import (
    DEFAULT_FRAME_HEIGHT,
    DEFAULT_FRAME_WIDTH,
    DEFAULT_JPEG_QUALITY,
    INPUT_BLOCK_SIZE,
    INPUT_SAMPLE_RATE,
    OUTPUT_SAMPLE_RATE,
)
from vikara.codec.pcm import pcm16_to_float32, resample
from vikara.exceptions import DevicePermissionError
from vikara.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from vikara.audio.input import FrameSource
    from vikara.audio.output import AudioSink

logger = get_logger("audio.devices")


def _import_sounddevice() -> Any:
    """Import sounddevice, raising a clear error if missing."""
    try:
        import sounddevice as sd

        return sd
    except ImportError as exc:
        raise ImportError(
            "sounddevice is required for voice sessions. "
            "Install it with: pip install vikara-voice[audio]"
        ) from exc


def _import_cv2() -> Any:
    """Import OpenCV, raising a clear error if missing."""
    try:
        import cv2

        return cv2
    except ImportError as exc:
        raise ImportError(
            "opencv-python is required for vision sessions. "
            "Install it with: pip install vikara-voice[vision]"
        ) from exc


class CaptureDevice(Protocol):
    """A microphone delivering mono float32 windows on the event loop."""

    def start(self, on_window: Callable[[np.ndarray], None]) -> None: ...

    def close(self) -> None: ...


class MediaDevices(Protocol):
    """Acquires capture and playback devices for one session.

    Every ``open_*`` raises DevicePermissionError when access is denied or
    the device is missing.
    """

    def open_microphone(self, sample_rate: int, block_size: int) -> CaptureDevice: ...

    def open_camera(self) -> FrameSource: ...

    def open_speaker(self, sample_rate: int) -> AudioSink: ...


# ---------------------------------------------------------------------------
# Microphone
# ---------------------------------------------------------------------------


class SoundDeviceMicrophone:
    """16-bit mono capture through a PortAudio ``RawInputStream``."""

    def __init__(
        self,
        sample_rate: int = INPUT_SAMPLE_RATE,
        block_size: int = INPUT_BLOCK_SIZE,
        device: int | str | None = None,
    ) -> None:
        sd = _import_sounddevice()
        self._sample_rate = sample_rate
        self._on_window: Callable[[np.ndarray], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        try:
            self._stream = sd.RawInputStream(
                samplerate=sample_rate,
                blocksize=block_size,
                channels=1,
                dtype="int16",
                device=device,
                callback=self._callback,
            )
        except sd.PortAudioError as exc:
            raise DevicePermissionError("microphone", str(exc)) from exc
        self._closed = False

    def _callback(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.warning("mic_status", status=str(status))
        loop, on_window = self._loop, self._on_window
        if loop is None or on_window is None or loop.is_closed():
            return
        block = bytes(indata)
        loop.call_soon_threadsafe(self._deliver, on_window, block)

    def _deliver(self, on_window: Callable[[np.ndarray], None], block: bytes) -> None:
        if self._closed:
            return
        on_window(pcm16_to_float32(block))

    def start(self, on_window: Callable[[np.ndarray], None]) -> None:
        self._loop = asyncio.get_running_loop()
        self._on_window = on_window
        self._stream.start()
        logger.info("mic_started", sample_rate=self._sample_rate)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_window = None
        try:
            self._stream.abort()
            self._stream.close()
        except Exception:
            logger.debug("mic_close_failed", exc_info=True)
        logger.info("mic_closed")


# ---------------------------------------------------------------------------
# Speaker
# ---------------------------------------------------------------------------


class _PlaybackSource:
    """One buffer positioned on the sink's frame clock."""

    __slots__ = ("_sample_rate", "samples", "start_frame", "stopped")

    def __init__(self, samples: np.ndarray, start_frame: int, sample_rate: int) -> None:
        self.samples = samples
        self.start_frame = start_frame
        self._sample_rate = sample_rate
        self.stopped = False

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)

    @property
    def end_time(self) -> float:
        return self.end_frame / self._sample_rate

    def stop(self) -> None:
        self.stopped = True


class SoundDevicePlaybackSink:
    """Speaker sink whose clock is the number of frames rendered.

    Sources at a different rate than the stream are resampled on schedule.
    """

    def __init__(
        self,
        sample_rate: int = OUTPUT_SAMPLE_RATE,
        device: int | str | None = None,
    ) -> None:
        sd = _import_sounddevice()
        self._sample_rate = sample_rate
        self._lock = threading.Lock()
        self._sources: list[_PlaybackSource] = []
        self._frames_rendered = 0
        try:
            self._stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=1,
                dtype="float32",
                device=device,
                callback=self._callback,
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            raise DevicePermissionError("speaker", str(exc)) from exc
        self._closed = False

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self._sample_rate

    def play_at(self, samples: np.ndarray, sample_rate: int, when: float) -> _PlaybackSource:
        if sample_rate != self._sample_rate:
            samples = resample(samples, sample_rate, self._sample_rate)
        source = _PlaybackSource(
            np.asarray(samples, dtype=np.float32),
            start_frame=round(when * self._sample_rate),
            sample_rate=self._sample_rate,
        )
        with self._lock:
            self._sources.append(source)
        return source

    def _callback(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.warning("speaker_status", status=str(status))
        block = np.zeros(frames, dtype=np.float32)
        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames
            alive = []
            for source in self._sources:
                if source.stopped or source.end_frame <= block_start:
                    continue
                alive.append(source)
                if source.start_frame >= block_end:
                    continue
                lo = max(block_start, source.start_frame)
                hi = min(block_end, source.end_frame)
                block[lo - block_start : hi - block_start] += source.samples[
                    lo - source.start_frame : hi - source.start_frame
                ]
            self._sources = alive
            self._frames_rendered = block_end
        outdata[:, 0] = np.clip(block, -1.0, 1.0)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self._lock:
            self._sources.clear()
        try:
            self._stream.abort()
            self._stream.close()
        except Exception:
            logger.debug("speaker_close_failed", exc_info=True)


# ---------------------------------------------------------------------------
# Camera
# ---------------------------------------------------------------------------


class OpenCVCamera:
    """Webcam frames as JPEG via ``cv2.VideoCapture``."""

    def __init__(
        self,
        index: int = 0,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        width: int = DEFAULT_FRAME_WIDTH,
        height: int = DEFAULT_FRAME_HEIGHT,
    ) -> None:
        self._cv2 = _import_cv2()
        self._jpeg_quality = jpeg_quality
        self._size = (width, height)
        self._capture = self._cv2.VideoCapture(index)
        if not self._capture.isOpened():
            self._capture.release()
            raise DevicePermissionError("camera", f"device {index} could not be opened")
        self._capture.set(self._cv2.CAP_PROP_BUFFERSIZE, 1)

    def read_jpeg(self) -> bytes | None:
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        if (frame.shape[1], frame.shape[0]) != self._size:
            frame = self._cv2.resize(frame, self._size)
        ok, encoded = self._cv2.imencode(
            ".jpg", frame, [int(self._cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality]
        )
        if not ok:
            return None
        return bytes(encoded.tobytes())

    def close(self) -> None:
        self._capture.release()


class LocalMediaDevices:
    """MediaDevices backed by the default system microphone, speaker and webcam."""

    def __init__(
        self,
        camera_index: int = 0,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        input_device: int | str | None = None,
        output_device: int | str | None = None,
    ) -> None:
        self._camera_index = camera_index
        self._jpeg_quality = jpeg_quality
        self._input_device = input_device
        self._output_device = output_device

    def open_microphone(self, sample_rate: int, block_size: int) -> SoundDeviceMicrophone:
        return SoundDeviceMicrophone(sample_rate, block_size, device=self._input_device)

    def open_camera(self) -> OpenCVCamera:
        return OpenCVCamera(self._camera_index, jpeg_quality=self._jpeg_quality)

    def open_speaker(self, sample_rate: int) -> SoundDevicePlaybackSink:
        return SoundDevicePlaybackSink(sample_rate, device=self._output_device)
