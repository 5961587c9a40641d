"""PCM codec between float sample windows and the realtime wire format."""

from __future__ import annotations

from vikara.codec.pcm import decode_from_transport, encode_for_transport, resample, rms_level

__all__ = ["decode_from_transport", "encode_for_transport", "resample", "rms_level"]
