"""Packages encoded bytes and metadata into the artifact handed to the caller."""

from __future__ import annotations

from typing import Callable, Iterable

from response_audio.core.logging_utils import LoggerLike, component_logger

from ..domain import AudioMetadata, AudioRecording, LowAmplitudeWarning

RecordingCallback = Callable[[AudioRecording], None]


class RecordingResultAssembler:
    """Build the terminal :class:`AudioRecording` and deliver it exactly once."""

    def __init__(
        self,
        on_recording_complete: RecordingCallback | None = None,
        logger: LoggerLike = None,
    ) -> None:
        self._callback = on_recording_complete
        self._last_delivered: AudioRecording | None = None
        self.logger = component_logger(logger, "Assembler")

    def set_callback(self, callback: RecordingCallback | None) -> None:
        self._callback = callback

    def assemble(
        self,
        encoded_bytes: bytes,
        metadata: AudioMetadata,
        warnings: Iterable[LowAmplitudeWarning] = (),
    ) -> AudioRecording:
        return AudioRecording(
            encoded_bytes=bytes(encoded_bytes),
            metadata=metadata,
            warnings=tuple(warnings),
        )

    def deliver(self, recording: AudioRecording) -> bool:
        """Invoke the completion callback; a given artifact is never delivered twice."""
        if recording is self._last_delivered:
            self.logger.debug("Recording already delivered; skipping")
            return False
        self._last_delivered = recording
        self.logger.info(
            "Recording complete: %d bytes, %.2fs",
            recording.size,
            recording.metadata.duration_sec,
        )
        if self._callback is None:
            return True
        try:
            self._callback(recording)
        except Exception:
            self.logger.exception("Recording completion callback failed")
        return True


__all__ = ["RecordingCallback", "RecordingResultAssembler"]
