"""Audio format constants shared by the codec, pipelines and device layer."""

from __future__ import annotations

# --- PCM 16-bit format ---
# Signed 16-bit integer range: [-32768, 32767]
PCM_INT16_MAX: int = 32767
PCM_INT16_MIN: int = -32768
# int16 / 32768.0 maps to [-1.0, ~0.99997].
PCM_INT16_SCALE: float = 32768.0

# Bytes per sample for 16-bit PCM.
BYTES_PER_SAMPLE_INT16: int = 2

# --- Standard sample rates ---
# The realtime model consumes 16kHz mono and speaks back at 24kHz mono.
INPUT_SAMPLE_RATE: int = 16000
OUTPUT_SAMPLE_RATE: int = 24000

# Microphone window size in samples (256ms at 16kHz).
INPUT_BLOCK_SIZE: int = 4096

# --- Wire MIME types ---
INPUT_AUDIO_MIME: str = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"
FRAME_MIME: str = "image/jpeg"

# --- UI loudness meter ---
# RMS of speech rarely exceeds ~0.2; scale so the meter uses its full range.
LEVEL_METER_GAIN: float = 5.0

# --- Camera ---
DEFAULT_FRAME_INTERVAL_S: float = 1.0
DEFAULT_JPEG_QUALITY: int = 60
DEFAULT_FRAME_WIDTH: int = 640
DEFAULT_FRAME_HEIGHT: int = 480
