"""16-bit PCM encode/decode for the realtime stream.

Pure numpy functions with no shared state, safe to call concurrently for
independent chunks. The model accepts 16kHz mono little-endian int16 and
returns 24kHz mono little-endian int16, base64-encoded on the wire.

Out-of-range input is clamped to [-1.0, 1.0] before quantization. This is
a lossy policy applied on purpose: int16 cannot represent the excess.
"""

from __future__ import annotations

import base64
import binascii
import re
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from vikara._audio_constants import (
    BYTES_PER_SAMPLE_INT16,
    INPUT_SAMPLE_RATE,
    LEVEL_METER_GAIN,
    OUTPUT_SAMPLE_RATE,
    PCM_INT16_MAX,
    PCM_INT16_MIN,
    PCM_INT16_SCALE,
)
from vikara._types import MediaBlob
from vikara.exceptions import AudioFormatError

__all__ = [
    "decode_from_transport",
    "encode_for_transport",
    "float32_to_pcm16",
    "pcm16_to_float32",
    "resample",
    "rms_level",
]

_RATE_PARAM = re.compile(r"rate=(\d+)")


def resample(audio: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Resample mono audio with ``scipy.signal.resample_poly``.

    Returns the input unchanged when ``from_rate == to_rate``.
    """
    if from_rate <= 0 or to_rate <= 0:
        raise AudioFormatError(f"sample rates must be positive, got {from_rate} -> {to_rate}")
    if from_rate == to_rate:
        return audio

    divisor = gcd(from_rate, to_rate)
    resampled = resample_poly(audio, to_rate // divisor, from_rate // divisor)
    return np.asarray(resampled, dtype=np.float32)


def float32_to_pcm16(samples: np.ndarray) -> bytes:
    """Clamp to [-1, 1], scale by 32768 and pack as little-endian int16."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.clip(np.rint(clipped * PCM_INT16_SCALE), PCM_INT16_MIN, PCM_INT16_MAX)
    return scaled.astype("<i2").tobytes()


def pcm16_to_float32(pcm: bytes) -> np.ndarray:
    """Convert little-endian 16-bit PCM bytes to float32 in [-1.0, 1.0).

    Raises:
        AudioFormatError: If the byte length is not a whole number of samples.
    """
    if len(pcm) % BYTES_PER_SAMPLE_INT16 != 0:
        raise AudioFormatError("PCM 16-bit audio must have an even number of bytes")

    audio = np.frombuffer(pcm, dtype="<i2").astype(np.float32)
    audio /= PCM_INT16_SCALE
    return audio


def encode_for_transport(
    samples: np.ndarray | list[float],
    source_rate: int = INPUT_SAMPLE_RATE,
) -> MediaBlob:
    """Encode a window of float samples as a 16kHz PCM media blob.

    Args:
        samples: Mono samples, nominally in [-1.0, 1.0].
        source_rate: Rate the samples were captured at. Resampled to 16kHz if different.

    Returns:
        MediaBlob with raw PCM bytes and ``audio/pcm;rate=16000`` MIME type.
    """
    audio = np.asarray(samples, dtype=np.float32)
    if audio.ndim != 1:
        raise AudioFormatError(f"expected mono samples, got shape {audio.shape}")
    audio = resample(audio, source_rate, INPUT_SAMPLE_RATE)
    return MediaBlob(data=float32_to_pcm16(audio), mime_type=f"audio/pcm;rate={INPUT_SAMPLE_RATE}")


def decode_from_transport(
    blob: MediaBlob | bytes | str,
    default_rate: int = OUTPUT_SAMPLE_RATE,
) -> tuple[np.ndarray, int]:
    """Decode model audio into float32 samples and their sample rate.

    Accepts raw PCM bytes, a base64 string as found in ``inlineData.data``,
    or a MediaBlob whose MIME type may carry ``rate=<hz>``.

    Raises:
        AudioFormatError: On invalid base64 or an odd byte count.
    """
    rate = default_rate
    if isinstance(blob, MediaBlob):
        match = _RATE_PARAM.search(blob.mime_type)
        if match:
            rate = int(match.group(1))
        pcm = blob.data
    elif isinstance(blob, str):
        try:
            pcm = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise AudioFormatError(f"audio payload is not valid base64: {exc}") from exc
    else:
        pcm = bytes(blob)

    return pcm16_to_float32(pcm), rate


def rms_level(samples: np.ndarray) -> float:
    """Loudness for UI meters: RMS scaled by 5 and clamped to [0, 1]."""
    if len(samples) == 0:
        return 0.0
    audio = np.asarray(samples, dtype=np.float32)
    rms = float(np.sqrt(np.mean(np.square(audio))))
    return min(1.0, rms * LEVEL_METER_GAIN)
