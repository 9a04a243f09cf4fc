"""Core data structures for the recorder domain layer."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from .constants import AUDIO_BIT_DEPTH, AUDIO_CHANNELS_MONO
from .errors import LowAmplitudeWarning


class RecordingState(str, Enum):
    IDLE = "idle"
    MONITORING = "monitoring"
    RECORDING = "recording"


@dataclass(slots=True, frozen=True)
class AudioDevice:
    device_id: str
    label: str
    group_id: str | None = None
    channels: int = 0
    default_sample_rate: float | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"deviceId": self.device_id, "label": self.label}
        if self.group_id is not None:
            payload["groupId"] = self.group_id
        return payload


@dataclass(slots=True, frozen=True)
class SampleChunk:
    """One window of frames exactly as delivered by the device."""

    data: np.ndarray
    chunk_index: int
    sample_rate: int
    monotonic_time: float = field(default_factory=time.monotonic)

    @property
    def frames(self) -> int:
        return int(self.data.shape[0])

    @property
    def channels(self) -> int:
        return 1 if self.data.ndim == 1 else int(self.data.shape[1])

    @property
    def duration_s(self) -> float:
        return self.frames / self.sample_rate


@dataclass(slots=True, frozen=True)
class AudioMetadata:
    mic_name: str
    mic_device_id: str | None
    sample_rate: int
    duration_sec: float
    true_peak_db: float
    integrated_loudness_db: float
    bit_depth: int = AUDIO_BIT_DEPTH
    channels: int = AUDIO_CHANNELS_MONO

    def to_dict(self) -> dict[str, object]:
        """Serialize with the field names existing reviewers expect."""
        return {
            "micName": self.mic_name,
            "micDeviceId": self.mic_device_id,
            "sampleRate": self.sample_rate,
            "bitDepth": self.bit_depth,
            "channels": self.channels,
            "durationSec": self.duration_sec,
            "truePeakDb": self.true_peak_db,
            "integratedLoudnessDb": self.integrated_loudness_db,
        }

    def display_summary(self) -> dict[str, object]:
        payload = self.to_dict()
        for key in ("durationSec", "truePeakDb", "integratedLoudnessDb"):
            payload[key] = round(float(payload[key]), 2)
        return payload


@dataclass(slots=True, frozen=True)
class AudioRecording:
    encoded_bytes: bytes
    metadata: AudioMetadata
    warnings: tuple[LowAmplitudeWarning, ...] = ()

    mime_type = "audio/wav"

    @property
    def size(self) -> int:
        return len(self.encoded_bytes)


@dataclass(slots=True, frozen=True)
class CaptureSnapshot:
    state: RecordingState
    device: AudioDevice | None
    level_db: float
    elapsed_seconds: float
    sample_count: int
    below_min_duration: bool
    status_text: str
    last_error: str | None


__all__ = [
    "AudioDevice",
    "AudioMetadata",
    "AudioRecording",
    "CaptureSnapshot",
    "RecordingState",
    "SampleChunk",
]
