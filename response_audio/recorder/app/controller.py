"""Recording lifecycle: monitor, record, stop, package."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Callable, Optional

import numpy as np

from response_audio.core.logging_utils import LoggerLike, component_logger

from ..config import RecorderSettings
from ..discovery import DeviceEnumerator
from ..domain import (
    AudioDevice,
    AudioRecording,
    CaptureError,
    CaptureSnapshot,
    DeviceNotFound,
    EmptyCaptureError,
    EncodingError,
    LevelMeter,
    NotRecordingError,
    PermissionDenied,
    RecorderState,
    RecordingInProgressError,
    RecordingState,
    SampleAccumulator,
    SampleChunk,
)
from ..domain.dsp import build_peaks, downmix_to_mono
from ..services import (
    CaptureSession,
    PostProcessor,
    RecordingCallback,
    RecordingResultAssembler,
    StreamFactory,
    WavEncoder,
)

ErrorCallback = Callable[[CaptureError], None]


class RecordingController:
    """Owns the capture session, level meter and recording buffer.

    State moves ``IDLE -> MONITORING -> RECORDING -> MONITORING`` and back
    to ``IDLE`` when monitoring is disabled. Every transition runs on the
    event loop; the device callback only enqueues chunks.
    """

    def __init__(
        self,
        settings: Optional[RecorderSettings] = None,
        *,
        enumerator: Optional[DeviceEnumerator] = None,
        stream_factory: Optional[StreamFactory] = None,
        on_recording_complete: Optional[RecordingCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        logger: LoggerLike = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or RecorderSettings()
        self.logger = component_logger(logger, "Controller")
        self.enumerator = enumerator or DeviceEnumerator()
        self.state = RecorderState()
        self.state.min_duration_seconds = self.settings.min_duration_seconds
        self.level_meter = LevelMeter(time_constant=self.settings.meter_time_constant)
        self.accumulator = SampleAccumulator()
        self.post_processor = PostProcessor(
            oversample=self.settings.true_peak_oversample,
            low_amplitude_threshold=self.settings.low_amplitude_threshold,
            logger=self.logger,
        )
        self.encoder = WavEncoder()
        self.assembler = RecordingResultAssembler(on_recording_complete, logger=self.logger)
        self.last_recording: AudioRecording | None = None

        self._stream_factory = stream_factory
        self._on_error = on_error
        self._clock = clock
        self._session: CaptureSession | None = None
        self._consumer_task: asyncio.Task | None = None
        self._max_duration_handle: asyncio.TimerHandle | None = None
        self._auto_stop_task: asyncio.Task | None = None
        self._started_at: float | None = None
        self._generation = 0
        self._last_samples = np.zeros(0, dtype=np.float32)
        self._chunk_errors = 0
        self._transition_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def recording_state(self) -> RecordingState:
        return self.state.state

    @property
    def recording(self) -> bool:
        return self.state.state is RecordingState.RECORDING

    @property
    def monitoring(self) -> bool:
        return self.state.state is not RecordingState.IDLE

    @property
    def device(self) -> AudioDevice | None:
        return self.state.device

    @property
    def session(self) -> CaptureSession | None:
        return self._session

    @property
    def level_db(self) -> float:
        return self.level_meter.level_db

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    @property
    def sample_rate(self) -> int:
        if self._session is not None:
            return self._session.sample_rate
        return self.settings.sample_rate

    def set_error_callback(self, callback: Optional[ErrorCallback]) -> None:
        """Receives failures from automatic stops, which have no awaiting caller."""
        self._on_error = callback

    def recording_limits(self) -> dict[str, float | None]:
        return self.settings.recording_limits()

    def snapshot(self) -> CaptureSnapshot:
        return self.state.snapshot()

    def subscribe(self, observer: Callable[[CaptureSnapshot], None]) -> None:
        self.state.subscribe(observer)

    def unsubscribe(self, observer: Callable[[CaptureSnapshot], None]) -> None:
        self.state.unsubscribe(observer)

    def waveform_peaks(self, width: int) -> np.ndarray:
        """Min/max pairs of the live buffer, or of the last finished take."""
        if self.recording:
            samples = self.accumulator.buffer.to_array()
        else:
            samples = self._last_samples
        return build_peaks(samples, width)

    # ------------------------------------------------------------------
    # Device selection

    async def list_devices(self) -> list[AudioDevice]:
        return await self.enumerator.list_devices_async()

    async def select_device(self, device: AudioDevice | str) -> AudioDevice:
        """Switch microphones; an open session is closed and the state returns to IDLE."""
        if not isinstance(device, AudioDevice):
            device = await asyncio.to_thread(self.enumerator.get_device, str(device))

        async with self._transition_lock:
            if self.state.device == device:
                return device
            if self._session is not None:
                self.logger.info("Switching microphone to %s; closing current session", device.label)
                await self._shutdown_session("microphone changed")
            self.state.set_device(device)
            self.logger.info("Selected microphone %s (%s)", device.label, device.device_id)
        return device

    def _resolve_initial_device(self) -> AudioDevice:
        if self.settings.device_id is not None:
            return self.enumerator.get_device(self.settings.device_id)
        device = self.enumerator.default_device()
        if device is None:
            raise DeviceNotFound("No audio input devices available")
        return device

    # ------------------------------------------------------------------
    # Monitoring

    async def enable_monitor(self) -> None:
        async with self._transition_lock:
            await self._ensure_monitoring()

    async def disable_monitor(self) -> None:
        async with self._transition_lock:
            await self._shutdown_session("monitoring disabled")

    async def aclose(self) -> None:
        await self.disable_monitor()
        if self._auto_stop_task is not None and not self._auto_stop_task.done():
            self._auto_stop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._auto_stop_task
        self._auto_stop_task = None

    async def __aenter__(self) -> "RecordingController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _ensure_monitoring(self) -> None:
        if self._session is not None and self._session.is_open:
            return

        try:
            device = self.state.device or await asyncio.to_thread(self._resolve_initial_device)
        except CaptureError as exc:
            self._record_error(exc)
            raise
        self.state.set_device(device)

        session = CaptureSession(
            device,
            sample_rate=self.settings.sample_rate,
            channels=self.settings.preferred_channels,
            chunk_frames=self.settings.chunk_frames,
            buffer_capacity=self.settings.buffer_capacity,
            stream_factory=self._stream_factory,
            logger=self.logger,
        )
        session.bind(asyncio.get_running_loop())
        try:
            await asyncio.wait_for(
                asyncio.to_thread(session.open),
                timeout=self.settings.session_start_timeout,
            )
        except asyncio.TimeoutError as exc:
            await self._close_session(session)
            error = PermissionDenied(
                f"Timed out after {self.settings.session_start_timeout:.1f}s opening microphone '{device.label}'"
            )
            self.logger.error("%s", error)
            self._record_error(error)
            raise error from exc
        except CaptureError as exc:
            await self._close_session(session)
            self._record_error(exc)
            raise

        self._session = session
        self._chunk_errors = 0
        self.level_meter.reset()
        self._consumer_task = asyncio.create_task(
            self._consume(session),
            name=f"response-audio-consumer-{device.device_id}",
        )
        self.state.set_state(RecordingState.MONITORING)
        self.logger.info(
            "Monitoring %s at %d Hz (%d channel%s)",
            device.label,
            session.sample_rate,
            session.channel_count,
            "s" if session.channel_count != 1 else "",
        )

    async def _shutdown_session(self, reason: str) -> None:
        if self.recording:
            self._abort_recording(reason)

        session = self._session
        task = self._consumer_task
        self._session = None
        self._consumer_task = None

        if session is not None:
            await self._close_session(session)
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self.level_meter.reset()
        self.state.set_state(RecordingState.IDLE)
        if session is not None:
            self.logger.info("Monitoring stopped (%s)", reason)

    async def _close_session(self, session: CaptureSession) -> None:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(session.close),
                timeout=self.settings.session_stop_timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "Timed out after %.1fs closing input stream for %s",
                self.settings.session_stop_timeout,
                session.device.device_id,
            )

    # ------------------------------------------------------------------
    # Chunk flow

    async def _consume(self, session: CaptureSession) -> None:
        while True:
            chunk = await session.get_chunk()
            if chunk is None or session is not self._session:
                break
            self._process_chunk(chunk)

    def _drain_pending(self) -> None:
        if self._session is None:
            return
        for chunk in self._session.drain_pending():
            self._process_chunk(chunk)

    def _process_chunk(self, chunk: SampleChunk) -> None:
        try:
            self._handle_chunk(chunk)
        except Exception:
            self._chunk_errors += 1
            if self._chunk_errors == 1:
                self.logger.warning("Failed to process audio chunk %d", chunk.chunk_index, exc_info=True)

    def _handle_chunk(self, chunk: SampleChunk) -> None:
        mono = downmix_to_mono(chunk.data)
        level = self.level_meter.add_samples(mono, chunk.sample_rate)
        if self.recording:
            self.accumulator.accept(mono)
            self.state.update_live(
                level,
                elapsed_seconds=self.elapsed_seconds,
                sample_count=self.accumulator.sample_count,
            )
        else:
            self.state.update_live(level)

    # ------------------------------------------------------------------
    # Recording

    async def start(self) -> None:
        async with self._transition_lock:
            if self.recording:
                raise RecordingInProgressError()
            await self._ensure_monitoring()

            # Chunks captured before this point only feed the meter.
            self._drain_pending()
            self.level_meter.reset()
            self.accumulator.begin()
            self._generation += 1
            self._started_at = self._clock()
            self.state.set_state(RecordingState.RECORDING)

            max_duration = self.settings.max_duration_seconds
            if max_duration:
                loop = asyncio.get_running_loop()
                self._max_duration_handle = loop.call_later(
                    max_duration, self._on_max_duration, self._generation
                )
            self.logger.info(
                "Recording started on %s%s",
                self.device.label if self.device else "unknown device",
                f" (max {max_duration:.1f}s)" if max_duration else "",
            )

    async def stop(self) -> AudioRecording:
        """Freeze the buffer, analyse and encode it, then deliver the artifact."""
        if not self.recording:
            raise NotRecordingError()

        self._cancel_max_duration()
        self._drain_pending()
        elapsed = self.elapsed_seconds
        mono = self.accumulator.finish()
        self._started_at = None
        sample_rate = self.sample_rate
        device = self.device
        self.state.set_state(RecordingState.MONITORING)
        self.logger.info(
            "Recording stopped after %.2fs (%d samples)", elapsed, mono.size
        )
        return await self._finalize(mono, sample_rate, device)

    def discard_recording(self) -> None:
        if self.last_recording is not None:
            self.logger.info("Discarding last recording")
        self.last_recording = None
        self._last_samples = np.zeros(0, dtype=np.float32)

    async def _finalize(
        self,
        mono: np.ndarray,
        sample_rate: int,
        device: AudioDevice | None,
    ) -> AudioRecording:
        if mono.size == 0:
            error = EmptyCaptureError("No audio captured. Check the microphone and try again.")
            self.logger.error("No audio captured; nothing to deliver")
            self._record_error(error)
            raise error

        duration = mono.size / float(sample_rate)
        min_duration = self.settings.min_duration_seconds
        if min_duration and duration < min_duration:
            self.logger.info(
                "Recording is shorter than the suggested minimum (%.2fs < %.2fs)",
                duration,
                min_duration,
            )

        try:
            recording = await asyncio.to_thread(self._build_recording, mono, sample_rate, device)
        except (EncodingError, ValueError) as exc:
            error = exc if isinstance(exc, EncodingError) else EncodingError(str(exc))
            self.logger.exception("Failed to encode recording")
            self._record_error(error)
            if error is exc:
                raise
            raise error from exc

        self.last_recording = recording
        self._last_samples = mono
        self.assembler.deliver(recording)
        return recording

    def _build_recording(
        self,
        mono: np.ndarray,
        sample_rate: int,
        device: AudioDevice | None,
    ) -> AudioRecording:
        metadata = self.post_processor.analyze(
            mono,
            sample_rate,
            mic_name=device.label if device else None,
            mic_device_id=device.device_id if device else None,
        )
        warning = self.post_processor.check_amplitude(mono)
        encoded = self.encoder.encode(mono, sample_rate)
        return self.assembler.assemble(encoded, metadata, [warning] if warning else [])

    def _abort_recording(self, reason: str) -> None:
        self._cancel_max_duration()
        discarded = self.accumulator.sample_count
        self.accumulator.discard()
        self._started_at = None
        self._generation += 1
        self.state.set_state(RecordingState.MONITORING)
        self.logger.warning("Recording aborted (%s); %d samples discarded", reason, discarded)

    # ------------------------------------------------------------------
    # Max duration

    def _cancel_max_duration(self) -> None:
        if self._max_duration_handle is not None:
            self._max_duration_handle.cancel()
            self._max_duration_handle = None

    def _on_max_duration(self, generation: int) -> None:
        self._max_duration_handle = None
        if generation != self._generation or not self.recording:
            return
        self.logger.info(
            "Maximum duration of %.1fs reached; stopping",
            self.settings.max_duration_seconds or 0.0,
        )
        self._auto_stop_task = asyncio.create_task(self._auto_stop(generation))

    async def _auto_stop(self, generation: int) -> None:
        if generation != self._generation or not self.recording:
            return
        try:
            await self.stop()
        except CaptureError as exc:
            self.logger.warning("Automatic stop failed: %s", exc)
            self._report_error(exc)

    # ------------------------------------------------------------------
    # Error reporting

    def _record_error(self, error: CaptureError) -> None:
        self.state.set_error(str(error))

    def _report_error(self, error: CaptureError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            self.logger.exception("Error callback failed")


__all__ = ["ErrorCallback", "RecordingController"]
