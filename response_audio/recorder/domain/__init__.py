"""Domain models and algorithms for the response recorder."""

from .accumulator import MonoSampleBuffer, SampleAccumulator
from .constants import (
    AUDIO_BIT_DEPTH,
    AUDIO_CHANNELS_MONO,
    DB_MAX,
    DB_MIN,
    DEFAULT_CHUNK_FRAMES,
    DEFAULT_SAMPLE_RATE,
)
from .entities import (
    AudioDevice,
    AudioMetadata,
    AudioRecording,
    CaptureSnapshot,
    RecordingState,
    SampleChunk,
)
from .errors import (
    CaptureError,
    DeviceNotFound,
    EmptyCaptureError,
    EncodingError,
    LowAmplitudeWarning,
    NotRecordingError,
    PermissionDenied,
    RecordingInProgressError,
)
from .level_meter import LevelMeter
from .state import RecorderState

__all__ = [
    "AudioDevice",
    "AudioMetadata",
    "AudioRecording",
    "CaptureError",
    "CaptureSnapshot",
    "DeviceNotFound",
    "EmptyCaptureError",
    "EncodingError",
    "LevelMeter",
    "LowAmplitudeWarning",
    "MonoSampleBuffer",
    "NotRecordingError",
    "PermissionDenied",
    "RecorderState",
    "RecordingInProgressError",
    "RecordingState",
    "SampleAccumulator",
    "SampleChunk",
    "AUDIO_BIT_DEPTH",
    "AUDIO_CHANNELS_MONO",
    "DB_MIN",
    "DB_MAX",
    "DEFAULT_CHUNK_FRAMES",
    "DEFAULT_SAMPLE_RATE",
]
