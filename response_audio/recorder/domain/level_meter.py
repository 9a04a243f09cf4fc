"""Smoothed level metering for live input."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from .constants import DB_MAX, DB_MIN, METER_TIME_CONSTANT
from .dsp import mean_square

# Amplitude that maps exactly onto DB_MIN, so silence reads -120 dBFS.
_SILENCE_EPS = 10.0 ** (DB_MIN / 20.0)


@dataclass(slots=True)
class LevelMeter:
    """Track an exponentially smoothed mean-square level for one mono stream.

    Each call folds one chunk in with ``beta = exp(-chunk_duration / time_constant)``
    so the smoothing does not depend on the device block size.
    """

    time_constant: float = METER_TIME_CONSTANT
    _ema_ms: float = field(init=False, default=0.0)
    _level_db: float = field(init=False, default=DB_MIN)

    def add_samples(self, samples: Iterable[float], sample_rate: float) -> float:
        array = np.asarray(samples, dtype=np.float32)
        if array.size == 0:
            return self._level_db
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")

        chunk_duration = array.size / float(sample_rate)
        beta = math.exp(-chunk_duration / self.time_constant)
        self._ema_ms = (1.0 - beta) * mean_square(array) + beta * self._ema_ms
        self._level_db = self._to_db(math.sqrt(self._ema_ms))
        return self._level_db

    def reset(self) -> None:
        self._ema_ms = 0.0
        self._level_db = DB_MIN

    @property
    def level_db(self) -> float:
        return self._level_db

    @property
    def ema_mean_square(self) -> float:
        return self._ema_ms

    @staticmethod
    def _to_db(value: float) -> float:
        if not math.isfinite(value) or value <= _SILENCE_EPS:
            return DB_MIN
        db = 20.0 * math.log10(value)
        return max(DB_MIN, min(DB_MAX, db))


__all__ = ["LevelMeter"]
