"""Whole-buffer analysis run once a recording has been frozen."""

from __future__ import annotations

import numpy as np

from response_audio.core.logging_utils import LoggerLike, component_logger

from ..domain import AudioMetadata, LowAmplitudeWarning
from ..domain.constants import (
    ANALYSIS_FLOOR,
    LOW_AMPLITUDE_THRESHOLD,
    TRUE_PEAK_OVERSAMPLE,
    UNKNOWN_MIC_NAME,
)
from ..domain.dsp import amplitude_to_db


def raw_peak(mono: np.ndarray) -> float:
    array = np.asarray(mono, dtype=np.float64).reshape(-1)
    if array.size == 0:
        return 0.0
    return float(np.max(np.abs(array)))


def true_peak(mono: np.ndarray, oversample: int = TRUE_PEAK_OVERSAMPLE) -> float:
    """Peak magnitude including Catmull-Rom interpolated points between samples.

    For every interior index ``i`` in ``1..n-3`` the curve through
    ``mono[i-1..i+2]`` is evaluated at ``t = k / oversample`` for
    ``k = 1..oversample-1``. The raw sample peak is the starting point, so
    the result never drops below it.
    """
    array = np.asarray(mono, dtype=np.float64).reshape(-1)
    peak = raw_peak(array)
    if array.size < 4 or oversample < 2:
        return peak

    p0 = array[:-3]
    p1 = array[1:-2]
    p2 = array[2:-1]
    p3 = array[3:]
    c1 = -p0 + p2
    c2 = 2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3
    c3 = -p0 + 3.0 * p1 - 3.0 * p2 + p3
    for k in range(1, oversample):
        t = k / oversample
        interpolated = 0.5 * (2.0 * p1 + c1 * t + c2 * t * t + c3 * t * t * t)
        peak = max(peak, float(np.max(np.abs(interpolated))))
    return peak


def true_peak_db(mono: np.ndarray, oversample: int = TRUE_PEAK_OVERSAMPLE) -> float:
    return amplitude_to_db(true_peak(mono, oversample), ANALYSIS_FLOOR)


def integrated_loudness_db(mono: np.ndarray) -> float:
    """RMS level of the whole buffer in dB, reported under the LUFS label.

    This is a plain RMS proxy, not a K-weighted gated measurement.
    """
    array = np.asarray(mono, dtype=np.float64).reshape(-1)
    if array.size == 0:
        return amplitude_to_db(0.0, ANALYSIS_FLOOR)
    rms = float(np.sqrt(np.mean(np.square(array))))
    return amplitude_to_db(rms, ANALYSIS_FLOOR)


class PostProcessor:
    """Produce the final metadata for a frozen mono buffer."""

    def __init__(
        self,
        *,
        oversample: int = TRUE_PEAK_OVERSAMPLE,
        low_amplitude_threshold: float = LOW_AMPLITUDE_THRESHOLD,
        logger: LoggerLike = None,
    ) -> None:
        self.oversample = max(1, int(oversample))
        self.low_amplitude_threshold = float(low_amplitude_threshold)
        self.logger = component_logger(logger, "PostProcessor")

    def analyze(
        self,
        mono: np.ndarray,
        sample_rate: int,
        *,
        mic_name: str | None,
        mic_device_id: str | None,
    ) -> AudioMetadata:
        array = np.asarray(mono, dtype=np.float32).reshape(-1)
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")

        metadata = AudioMetadata(
            mic_name=mic_name or UNKNOWN_MIC_NAME,
            mic_device_id=mic_device_id,
            sample_rate=int(sample_rate),
            duration_sec=array.size / float(sample_rate),
            true_peak_db=true_peak_db(array, self.oversample),
            integrated_loudness_db=integrated_loudness_db(array),
        )
        self.logger.debug(
            "Analyzed %d samples: %.3fs, true peak %.2f dBFS, loudness %.2f",
            array.size,
            metadata.duration_sec,
            metadata.true_peak_db,
            metadata.integrated_loudness_db,
        )
        return metadata

    def check_amplitude(self, mono: np.ndarray) -> LowAmplitudeWarning | None:
        peak = raw_peak(mono)
        if np.asarray(mono).size and peak < self.low_amplitude_threshold:
            self.logger.warning(
                "Audio captured but amplitude is very low: %.5f", peak
            )
            return LowAmplitudeWarning(peak, self.low_amplitude_threshold)
        return None


__all__ = [
    "PostProcessor",
    "integrated_loudness_db",
    "raw_peak",
    "true_peak",
    "true_peak_db",
]
