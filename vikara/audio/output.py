"""OutputPipeline: gapless playback of model speech.

Chunks arrive at irregular intervals and sizes. A single scheduling cursor
marks the next free playback slot:

    start  = max(cursor, sink.current_time)
    cursor = start + chunk_duration

Chunks that arrive faster than real time play back-to-back; a late chunk
plays immediately. Play order is arrival order. The cursor is only touched
from the event loop, so no lock is needed here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from vikara._types import AudioChunk
from vikara.codec.pcm import decode_from_transport
from vikara.logging import get_logger

if TYPE_CHECKING:
    import numpy as np

    from vikara._types import MediaBlob

logger = get_logger("audio.output")


class ScheduledSource(Protocol):
    """A buffer handed to the sink, playing or waiting to play."""

    @property
    def end_time(self) -> float: ...

    def stop(self) -> None:
        """Silence the source now. Idempotent."""
        ...


class AudioSink(Protocol):
    """Playback device with its own clock (seconds)."""

    @property
    def current_time(self) -> float: ...

    def play_at(self, samples: np.ndarray, sample_rate: int, when: float) -> ScheduledSource: ...

    def close(self) -> None: ...


class OutputPipeline:
    """Schedules decoded chunks on an AudioSink without gaps or reordering."""

    def __init__(self, sink: AudioSink) -> None:
        self._sink = sink
        self._cursor = sink.current_time
        self._sources: list[ScheduledSource] = []
        self._received = 0
        self._scheduled = 0
        self._stopped = False

    @property
    def cursor(self) -> float:
        """Sink time at which the next chunk would start."""
        return self._cursor

    @property
    def pending_sources(self) -> int:
        return len(self._sources)

    def enqueue(self, blob: MediaBlob) -> float | None:
        """Decode one model audio blob and schedule it.

        Returns the scheduled start time, or None when nothing was scheduled.
        """
        samples, rate = decode_from_transport(blob)
        self._received += 1
        chunk = AudioChunk(samples=samples, sample_rate=rate, sequence=self._received)
        return self.schedule(chunk)

    def schedule(self, chunk: AudioChunk) -> float | None:
        if self._stopped or len(chunk.samples) == 0:
            return None

        now = self._sink.current_time
        self._sources = [s for s in self._sources if s.end_time > now]

        start = max(self._cursor, now)
        source = self._sink.play_at(chunk.samples, chunk.sample_rate, start)
        self._sources.append(source)
        self._cursor = start + chunk.duration_s
        self._scheduled += 1

        if start > now:
            logger.debug(
                "chunk_queued",
                sequence=chunk.sequence,
                lead_ms=int((start - now) * 1000),
                duration_ms=int(chunk.duration_s * 1000),
            )
        return start

    def flush(self) -> int:
        """Stop every scheduled source and reset the cursor to now.

        Used on barge-in; the pipeline keeps accepting chunks.
        """
        stopped = len(self._sources)
        for source in self._sources:
            source.stop()
        self._sources = []
        self._cursor = self._sink.current_time
        if stopped:
            logger.debug("output_flushed", sources=stopped)
        return stopped

    def stop(self) -> None:
        """Stop pending audio for good. Later chunks are ignored. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        stopped = self.flush()
        logger.info("output_stopped", chunks_played=self._scheduled, sources_stopped=stopped)
