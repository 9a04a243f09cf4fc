"""Single-response microphone recorder producing 16-bit mono WAV files."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("response-audio")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .recorder.app import RecordingController
from .recorder.config import RecorderSettings
from .recorder.discovery import DeviceEnumerator
from .recorder.domain import (
    AudioDevice,
    AudioMetadata,
    AudioRecording,
    CaptureError,
    DeviceNotFound,
    EmptyCaptureError,
    EncodingError,
    LowAmplitudeWarning,
    PermissionDenied,
    RecordingState,
)

__all__ = [
    "AudioDevice",
    "AudioMetadata",
    "AudioRecording",
    "CaptureError",
    "DeviceEnumerator",
    "DeviceNotFound",
    "EmptyCaptureError",
    "EncodingError",
    "LowAmplitudeWarning",
    "PermissionDenied",
    "RecorderSettings",
    "RecordingController",
    "RecordingState",
    "__version__",
]
