"""Sample-level helpers shared by the meter, the accumulator and the analyzers."""

from __future__ import annotations

import math

import numpy as np

from .constants import ANALYSIS_FLOOR


def downmix_to_mono(block: np.ndarray) -> np.ndarray:
    """Average every channel of a ``(frames, channels)`` block into one float32 channel."""
    array = np.asarray(block, dtype=np.float32)
    if array.ndim == 1:
        return array.copy()
    if array.ndim != 2:
        raise ValueError(f"Expected a (frames, channels) block, got shape {array.shape}")
    if array.shape[1] == 1:
        return array[:, 0].copy()
    return array.mean(axis=1, dtype=np.float64).astype(np.float32)


def mean_square(samples: np.ndarray) -> float:
    array = np.asarray(samples, dtype=np.float64)
    if array.size == 0:
        return 0.0
    return float(np.mean(np.square(array)))


def amplitude_to_db(value: float, floor: float = ANALYSIS_FLOOR) -> float:
    return 20.0 * math.log10(max(floor, float(value)))


def build_peaks(mono: np.ndarray, width: int) -> np.ndarray:
    """Return a ``(width, 2)`` array of per-column (min, max) pairs for an overview.

    Each column covers ``max(1, len // width)`` samples; columns past the end
    of the buffer are zero.
    """
    if width <= 0:
        raise ValueError("width must be positive")
    array = np.asarray(mono, dtype=np.float32).reshape(-1)
    peaks = np.zeros((width, 2), dtype=np.float32)
    if array.size == 0:
        return peaks
    per_column = max(1, array.size // width)
    usable = min(width, math.ceil(array.size / per_column))
    for column in range(usable):
        segment = array[column * per_column:(column + 1) * per_column]
        if segment.size == 0:
            break
        peaks[column, 0] = segment.min()
        peaks[column, 1] = segment.max()
    return peaks


def format_duration(seconds: float) -> str:
    """Format whole elapsed seconds as ``m:ss``."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


__all__ = [
    "amplitude_to_db",
    "build_peaks",
    "downmix_to_mono",
    "format_duration",
    "mean_square",
]
