"""Application layer for the response recorder."""

from .controller import ErrorCallback, RecordingController

__all__ = ["ErrorCallback", "RecordingController"]
