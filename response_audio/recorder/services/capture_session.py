"""One open capture device stream feeding fixed-size chunks to the event loop."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Callable

import numpy as np
import sounddevice as sd

from response_audio.core.logging_utils import LoggerLike, component_logger

from ..domain import (
    DEFAULT_CHUNK_FRAMES,
    DEFAULT_SAMPLE_RATE,
    AudioDevice,
    DeviceNotFound,
    PermissionDenied,
    SampleChunk,
)
from ..domain.constants import PREFERRED_INPUT_CHANNELS
from .chunk_buffer import ChunkBuffer

StreamFactory = Callable[..., Any]

_MISSING_DEVICE_MARKERS = ("invalid device", "querying device", "no such device", "no input device")
_DEBUG_CHUNK_INTERVAL = 100


def _resolve_device(device_id: str | None) -> int | str | None:
    if device_id is None or device_id in ("", "default"):
        return None
    text = str(device_id).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    return text


def _translate_open_error(device: AudioDevice, exc: BaseException) -> Exception:
    message = str(exc)
    if isinstance(exc, ValueError) or any(marker in message.lower() for marker in _MISSING_DEVICE_MARKERS):
        return DeviceNotFound(f"Microphone '{device.label}' ({device.device_id}) not found: {message}")
    return PermissionDenied(f"Access to microphone '{device.label}' was refused: {message}")


class CaptureSession:
    """Owns the sounddevice stream for one device.

    The stream callback copies every block into a :class:`SampleChunk` and
    hands it to a bounded :class:`ChunkBuffer`; consumers pull chunks on the
    event loop. ``close()`` is idempotent and safe on every exit path.
    """

    def __init__(
        self,
        device: AudioDevice,
        *,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = PREFERRED_INPUT_CHANNELS,
        chunk_frames: int = DEFAULT_CHUNK_FRAMES,
        buffer_capacity: int = 64,
        stream_factory: StreamFactory | None = None,
        logger: LoggerLike = None,
    ) -> None:
        self.device = device
        self.sample_rate = max(1, int(sample_rate))
        self.channel_count = self._resolve_channels(device, channels)
        self.chunk_frames = max(1, int(chunk_frames))
        self._stream_factory = stream_factory or sd.InputStream
        self._buffer = ChunkBuffer(capacity=buffer_capacity)
        self._stream: Any = None
        self._closed = False
        self._state_lock = threading.Lock()
        self._chunk_counter = 0
        self._last_status: str | None = None
        self._last_drop_report = 0
        self.logger = component_logger(logger, "CaptureSession")

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._buffer.bind(loop)

    def open(self) -> "CaptureSession":
        with self._state_lock:
            if self._stream is not None:
                raise RuntimeError("Capture session is already open")
            if self._closed:
                raise RuntimeError("Capture session was closed")

        self.logger.debug(
            "Opening input stream for %s (%s) at %d Hz, %d channel%s",
            self.device.device_id,
            self.device.label,
            self.sample_rate,
            self.channel_count,
            "s" if self.channel_count != 1 else "",
        )
        stream = None
        try:
            stream = self._stream_factory(
                device=_resolve_device(self.device.device_id),
                channels=self.channel_count,
                samplerate=self.sample_rate,
                blocksize=self.chunk_frames,
                dtype="float32",
                callback=self._audio_callback,
            )
            self._adopt_stream_rate(stream)
            stream.start()
        except (sd.PortAudioError, ValueError, OSError) as exc:
            self._dispose(stream)
            self._buffer.stop()
            error = _translate_open_error(self.device, exc)
            self.logger.error("Failed to open input stream: %s", error)
            raise error from exc

        with self._state_lock:
            orphaned = self._closed
            if not orphaned:
                self._stream = stream
        if orphaned:
            # close() ran while the device was still opening
            self._dispose(stream)
            self.logger.debug("Session closed during open; stream released")
            return self

        self.logger.info("Input stream started (%d Hz)", self.sample_rate)
        return self

    def close(self) -> None:
        with self._state_lock:
            stream = self._stream
            self._stream = None
            self._closed = True
        self._buffer.stop()
        if stream is None:
            return
        self.logger.debug("Stopping input stream for %s", self.device.device_id)
        self._dispose(stream)
        self.logger.info(
            "Input stream stopped after %d chunk%s (%d dropped)",
            self._chunk_counter,
            "s" if self._chunk_counter != 1 else "",
            self._buffer.drops,
        )

    def __enter__(self) -> "CaptureSession":
        if self._stream is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Consumer side

    async def get_chunk(self) -> SampleChunk | None:
        return await self._buffer.get()

    def drain_pending(self) -> list[SampleChunk]:
        return self._buffer.drain()

    @property
    def chunk_count(self) -> int:
        return self._chunk_counter

    @property
    def drops(self) -> int:
        return self._buffer.drops

    # ------------------------------------------------------------------
    # Device callback (runs on the audio thread)

    def _audio_callback(self, indata, frames: int, time_info, status) -> None:
        if status:
            status_str = str(status)
            if status_str != self._last_status:
                self.logger.warning("Audio callback status: %s", status_str)
                self._last_status = status_str

        self._chunk_counter += 1
        chunk = SampleChunk(
            data=np.array(indata, dtype=np.float32, copy=True),
            chunk_index=self._chunk_counter,
            sample_rate=self.sample_rate,
            monotonic_time=time.monotonic(),
        )
        if not self._buffer.try_put(chunk) and self._buffer.running:
            drops = self._buffer.drops
            if drops - self._last_drop_report >= 25:
                self._last_drop_report = drops
                self.logger.warning("Dropped %d audio chunks due to slow consumer", drops)

        if self._chunk_counter % _DEBUG_CHUNK_INTERVAL == 0:
            self.logger.debug(
                "Captured %d chunks (%d queued, %d dropped)",
                self._chunk_counter,
                self._buffer.size,
                self._buffer.drops,
            )

    # ------------------------------------------------------------------
    # Internal helpers

    def _adopt_stream_rate(self, stream: Any) -> None:
        actual_rate = getattr(stream, "samplerate", None)
        if not isinstance(actual_rate, (int, float)) or not actual_rate:
            return
        if int(actual_rate) == self.sample_rate:
            return
        self.logger.info(
            "Device %s sample rate adjusted from %d to %d",
            self.device.device_id,
            self.sample_rate,
            int(actual_rate),
        )
        self.sample_rate = int(actual_rate)

    def _dispose(self, stream: Any) -> None:
        if stream is None:
            return
        try:
            stream.stop()
        except Exception as exc:
            self.logger.debug("Stream stop error: %s", exc)
        try:
            stream.close()
        except Exception as exc:
            self.logger.debug("Stream close error: %s", exc)

    @staticmethod
    def _resolve_channels(device: AudioDevice, preferred: int) -> int:
        preferred = max(1, int(preferred))
        if device.channels and device.channels > 0:
            return max(1, min(device.channels, preferred))
        return preferred


__all__ = ["CaptureSession", "StreamFactory"]
