"""Error taxonomy for capture, analysis and encoding."""

from __future__ import annotations


class CaptureError(Exception):
    """Base class for every failure surfaced to the caller."""

    code = "capture_error"


class PermissionDenied(CaptureError):
    """Access to the capture device was refused."""

    code = "permission_denied"


class DeviceNotFound(CaptureError):
    """The requested capture device does not exist."""

    code = "device_not_found"


class EmptyCaptureError(CaptureError):
    """stop() was reached without a single accumulated sample."""

    code = "empty_capture"

    def __init__(self, message: str = "No audio captured") -> None:
        super().__init__(message)


class EncodingError(CaptureError):
    """The finished buffer could not be serialized."""

    code = "encoding_error"


class RecordingInProgressError(CaptureError):
    code = "recording_in_progress"

    def __init__(self, message: str = "A recording is already in progress") -> None:
        super().__init__(message)


class NotRecordingError(CaptureError):
    code = "not_recording"

    def __init__(self, message: str = "No recording is in progress") -> None:
        super().__init__(message)


class LowAmplitudeWarning(UserWarning):
    """Samples were captured but the peak amplitude is suspiciously low.

    Attached to the finished recording, never raised.
    """

    code = "low_amplitude"

    def __init__(self, peak: float, threshold: float) -> None:
        self.peak = float(peak)
        self.threshold = float(threshold)
        super().__init__(
            f"Audio captured but volume is very low (peak {self.peak:.5f} < {self.threshold})"
        )


__all__ = [
    "CaptureError",
    "DeviceNotFound",
    "EmptyCaptureError",
    "EncodingError",
    "LowAmplitudeWarning",
    "NotRecordingError",
    "PermissionDenied",
    "RecordingInProgressError",
]
