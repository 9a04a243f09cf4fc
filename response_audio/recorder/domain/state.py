"""Observable recorder state, independent of sounddevice."""

from __future__ import annotations

from typing import Callable

from response_audio.core.logging_utils import get_module_logger

from .constants import DB_MIN
from .entities import AudioDevice, CaptureSnapshot, RecordingState
from .dsp import format_duration

logger = get_module_logger(__name__)


class RecorderState:
    """Holds the single device + recording state and notifies observers on change.

    Only the owning controller mutates it; observers receive immutable
    snapshots.
    """

    def __init__(self) -> None:
        self.state: RecordingState = RecordingState.IDLE
        self.device: AudioDevice | None = None
        self.level_db: float = DB_MIN
        self.elapsed_seconds: float = 0.0
        self.sample_count: int = 0
        self.min_duration_seconds: float | None = None
        self.last_error: str | None = None
        self._observers: list[Callable[[CaptureSnapshot], None]] = []
        self._status_text: str = "No microphone selected"

    # ------------------------------------------------------------------
    # Observer helpers

    def subscribe(self, observer: Callable[[CaptureSnapshot], None]) -> None:
        self._observers.append(observer)
        observer(self.snapshot())

    def unsubscribe(self, observer: Callable[[CaptureSnapshot], None]) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.debug("Observer notification failed", exc_info=True)

    @property
    def below_min_duration(self) -> bool:
        if not self.min_duration_seconds or self.state is not RecordingState.RECORDING:
            return False
        return self.elapsed_seconds < self.min_duration_seconds

    def snapshot(self) -> CaptureSnapshot:
        return CaptureSnapshot(
            state=self.state,
            device=self.device,
            level_db=self.level_db,
            elapsed_seconds=self.elapsed_seconds,
            sample_count=self.sample_count,
            below_min_duration=self.below_min_duration,
            status_text=self._status_text,
            last_error=self.last_error,
        )

    # ------------------------------------------------------------------
    # State mutation helpers

    def set_device(self, device: AudioDevice | None) -> None:
        if self.device == device:
            return
        self.device = device
        self._update_status()
        self._notify()

    def set_state(self, state: RecordingState) -> None:
        if self.state is state:
            return
        self.state = state
        if state is RecordingState.RECORDING:
            self.elapsed_seconds = 0.0
            self.sample_count = 0
            self.last_error = None
        if state is RecordingState.IDLE:
            self.level_db = DB_MIN
        self._update_status()
        self._notify()

    def update_live(
        self,
        level_db: float,
        *,
        elapsed_seconds: float | None = None,
        sample_count: int | None = None,
    ) -> None:
        """Apply one chunk worth of meter and progress changes with a single notification."""
        self.level_db = level_db
        if elapsed_seconds is not None:
            self.elapsed_seconds = max(0.0, elapsed_seconds)
        if sample_count is not None:
            self.sample_count = sample_count
        self._update_status()
        self._notify()

    def set_error(self, message: str | None) -> None:
        self.last_error = message
        self._notify()

    def _update_status(self) -> None:
        device_name = self.device.label if self.device else None
        if self.state is RecordingState.RECORDING:
            self._status_text = (
                f"Recording {format_duration(self.elapsed_seconds)} ({device_name or 'unknown'})"
            )
        elif self.state is RecordingState.MONITORING:
            self._status_text = f"Monitoring: {device_name or 'unknown'}"
        elif self.device is None:
            self._status_text = "No microphone selected"
        else:
            self._status_text = f"Microphone ready: {device_name}"


__all__ = ["RecorderState"]
