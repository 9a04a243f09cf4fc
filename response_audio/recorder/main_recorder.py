"""Command line entry point: list microphones or record one response to disk."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles

from response_audio.core.logging_config import configure_logging
from response_audio.core.logging_utils import get_module_logger

from .app import RecordingController
from .config import RecorderSettings, parse_cli_args
from .discovery import DeviceEnumerator
from .domain import AudioRecording, CaptureError, CaptureSnapshot, RecordingState
from .domain.dsp import format_duration

MODULE_DIR = Path(__file__).resolve().parent
CONFIG_FILENAME = "config.txt"

logger = get_module_logger("Recorder")

_DEFAULT_LOG_LEVEL = RecorderSettings().log_level.lower()
_LEVEL_ALIASES = {
    "warn": "warning",
    "fatal": "critical",
    "err": "error",
}
_VALID_LOG_LEVELS = {"debug", "info", "warning", "error", "critical"}


def _resolve_log_level(value: str | None) -> tuple[str, bool]:
    """Normalize user-supplied log levels before configuring logging."""

    normalized = (value or "").strip().lower()
    if not normalized:
        return _DEFAULT_LOG_LEVEL, False
    normalized = _LEVEL_ALIASES.get(normalized, normalized)
    if normalized in _VALID_LOG_LEVELS:
        return normalized, False
    return _DEFAULT_LOG_LEVEL, True


def resolve_config_path(cwd: Optional[Path] = None) -> Path:
    """Prefer ``config.txt`` in the working directory, then the package copy."""
    local = (cwd or Path.cwd()) / CONFIG_FILENAME
    if local.exists():
        return local
    return MODULE_DIR / CONFIG_FILENAME


def parse_args(argv: Optional[list[str]] = None):
    return parse_cli_args(argv, config_path=resolve_config_path())


def recording_basename(prefix: str, moment: Optional[datetime] = None) -> str:
    stamp = (moment or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{stamp}"


async def write_recording(
    recording: AudioRecording,
    output_dir: Path,
    prefix: str,
    *,
    moment: Optional[datetime] = None,
) -> tuple[Path, Path]:
    """Write the WAV bytes plus a JSON metadata sidecar next to it."""

    await asyncio.to_thread(output_dir.mkdir, parents=True, exist_ok=True)
    base = recording_basename(prefix, moment)
    wav_path = output_dir / f"{base}.wav"
    meta_path = output_dir / f"{base}.json"

    async with aiofiles.open(wav_path, "wb") as handle:
        await handle.write(recording.encoded_bytes)

    payload = {
        "mimeType": recording.mime_type,
        "sizeBytes": recording.size,
        "metadata": recording.metadata.to_dict(),
        "warnings": [str(warning) for warning in recording.warnings],
    }
    async with aiofiles.open(meta_path, "w", encoding="utf-8") as handle:
        await handle.write(json.dumps(payload, indent=2) + "\n")

    logger.info("Saved recording to %s (%d bytes)", wav_path, recording.size)
    return wav_path, meta_path


async def list_devices(enumerator: Optional[DeviceEnumerator] = None) -> int:
    enumerator = enumerator or DeviceEnumerator()
    try:
        devices = await enumerator.list_devices_async()
    except CaptureError as exc:
        logger.error("Unable to list microphones: %s", exc)
        return 1
    if not devices:
        print("No audio input devices found")
        return 0
    for device in devices:
        print(f"{device.device_id:>4}  {device.label} ({device.channels} ch)")
    return 0


def _install_stop_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_event.set)


def _console_progress(snapshot: CaptureSnapshot) -> None:
    if snapshot.state is RecordingState.RECORDING:
        logger.debug(
            "%s | level %.1f dB | %s",
            format_duration(snapshot.elapsed_seconds),
            snapshot.level_db,
            "below minimum" if snapshot.below_min_duration else "ok",
        )


async def record_once(
    settings: RecorderSettings,
    *,
    duration: Optional[float] = None,
    controller: Optional[RecordingController] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> Optional[AudioRecording]:
    """Monitor, record until ``duration``/Ctrl+C/max duration, then save to disk."""

    finished: asyncio.Future[AudioRecording] = asyncio.get_running_loop().create_future()

    def _on_complete(recording: AudioRecording) -> None:
        if not finished.done():
            finished.set_result(recording)

    def _on_error(error: CaptureError) -> None:
        if not finished.done():
            finished.set_exception(error)

    controller = controller or RecordingController(settings)
    controller.assembler.set_callback(_on_complete)
    controller.set_error_callback(_on_error)
    stop_event = stop_event or asyncio.Event()
    _install_stop_handlers(asyncio.get_running_loop(), stop_event)
    controller.subscribe(_console_progress)

    async with controller:
        await controller.start()
        logger.info("Recording... press Ctrl+C to stop")

        waiters = [asyncio.ensure_future(stop_event.wait())]
        waiters.append(asyncio.ensure_future(asyncio.shield(finished)))
        try:
            await asyncio.wait(waiters, timeout=duration, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

        if controller.recording:
            await controller.stop()
        recording = await finished

    await write_recording(recording, settings.output_dir, settings.file_prefix)
    summary = recording.metadata.display_summary()
    logger.info(
        "Duration %ss, true peak %s dBFS, loudness %s LUFS",
        summary["durationSec"],
        summary["truePeakDb"],
        summary["integratedLoudnessDb"],
    )
    for warning in recording.warnings:
        logger.warning("%s", warning)
    return recording


async def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    requested_level = str(getattr(args, "log_level", "") or "")
    effective_level, invalid_level = _resolve_log_level(requested_level)
    configure_logging(
        level=effective_level,
        console=getattr(args, "console_output", True),
        log_file=getattr(args, "log_file", None),
    )
    if requested_level and invalid_level:
        logger.warning(
            "Unknown log level '%s'; defaulting to %s",
            requested_level,
            effective_level,
        )

    if args.list_devices:
        return await list_devices()

    settings = RecorderSettings.from_args(args)
    logger.debug(
        "Recorder configured (device=%s, output_dir=%s, max_duration=%s)",
        settings.device_id,
        settings.output_dir,
        settings.max_duration_seconds,
    )
    try:
        await record_once(settings, duration=args.duration)
    except CaptureError as exc:
        logger.error("Recording failed: %s", exc)
        return 1
    return 0


def run(argv: Optional[list[str]] = None) -> int:
    return asyncio.run(main(argv))


if __name__ == "__main__":
    raise SystemExit(run())
