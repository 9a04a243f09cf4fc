"""Canonical 16-bit PCM mono WAV serialization."""

from __future__ import annotations

import io
import struct
import wave

import numpy as np

from ..domain import AUDIO_BIT_DEPTH, AUDIO_CHANNELS_MONO, EmptyCaptureError, EncodingError
from ..domain.constants import PCM_MAX

_SAMPLE_WIDTH = AUDIO_BIT_DEPTH // 8


def to_pcm16_bytes(mono: np.ndarray) -> bytes:
    """Clamp to [-1, 1], scale by 32767, floor, and pack little-endian int16."""
    array = np.asarray(mono, dtype=np.float64).reshape(-1)
    if not np.all(np.isfinite(array)):
        raise EncodingError("Sample buffer contains non-finite values")
    scaled = np.floor(np.clip(array, -1.0, 1.0) * PCM_MAX)
    return scaled.astype("<i2").tobytes()


def encode_wav16_mono(mono: np.ndarray, sample_rate: int) -> bytes:
    """Return the complete RIFF/WAVE byte sequence for ``mono``.

    The header is the canonical 44-byte PCM layout (``fmt `` chunk of 16
    bytes followed directly by ``data``).

    Raises:
        EmptyCaptureError: If the buffer holds no samples.
        EncodingError: If the rate is invalid or samples are not finite.
    """
    array = np.asarray(mono).reshape(-1)
    if array.size == 0:
        raise EmptyCaptureError("Refusing to encode an empty sample buffer")
    rate = int(sample_rate)
    if rate <= 0:
        raise EncodingError(f"Invalid sample rate: {sample_rate!r}")

    frames = to_pcm16_bytes(array)
    output = io.BytesIO()
    try:
        with wave.open(output, "wb") as wav_file:
            wav_file.setnchannels(AUDIO_CHANNELS_MONO)
            wav_file.setsampwidth(_SAMPLE_WIDTH)
            wav_file.setframerate(rate)
            wav_file.writeframes(frames)
    except (wave.Error, struct.error) as exc:
        raise EncodingError(f"Failed to encode WAV: {exc}") from exc
    return output.getvalue()


def decode_wav16_mono(data: bytes) -> tuple[np.ndarray, int]:
    """Decode 16-bit PCM mono WAV bytes into floats scaled by 1/32767."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            if wav_file.getnchannels() != AUDIO_CHANNELS_MONO or wav_file.getsampwidth() != _SAMPLE_WIDTH:
                raise EncodingError("Expected 16-bit mono PCM")
            rate = wav_file.getframerate()
            frames = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as exc:
        raise EncodingError(f"Failed to decode WAV: {exc}") from exc
    samples = np.frombuffer(frames, dtype="<i2").astype(np.float32) / PCM_MAX
    return samples, rate


class WavEncoder:
    """Callable wrapper so the encoder can be swapped in the controller."""

    def encode(self, mono: np.ndarray, sample_rate: int) -> bytes:
        return encode_wav16_mono(mono, sample_rate)

    def decode(self, data: bytes) -> tuple[np.ndarray, int]:
        return decode_wav16_mono(data)


__all__ = ["WavEncoder", "decode_wav16_mono", "encode_wav16_mono", "to_pcm16_bytes"]
