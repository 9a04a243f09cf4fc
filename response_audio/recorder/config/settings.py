"""Configuration loading + normalization helpers for the recorder."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from ..domain.constants import (
    DEFAULT_CHUNK_FRAMES,
    DEFAULT_SAMPLE_RATE,
    LOW_AMPLITUDE_THRESHOLD,
    METER_TIME_CONSTANT,
    PREFERRED_INPUT_CHANNELS,
    TRUE_PEAK_OVERSAMPLE,
)


@dataclass(slots=True)
class RecorderSettings:
    """Normalized configuration derived from CLI args and config file."""

    sample_rate: int = DEFAULT_SAMPLE_RATE
    chunk_frames: int = DEFAULT_CHUNK_FRAMES
    preferred_channels: int = PREFERRED_INPUT_CHANNELS
    max_duration_seconds: float | None = None
    min_duration_seconds: float | None = None
    device_id: str | None = None
    output_dir: Path = Path("recordings")
    file_prefix: str = "response"
    log_level: str = "info"
    log_file: Path | None = None
    console_output: bool = True
    meter_time_constant: float = METER_TIME_CONSTANT
    true_peak_oversample: int = TRUE_PEAK_OVERSAMPLE
    low_amplitude_threshold: float = LOW_AMPLITUDE_THRESHOLD
    buffer_capacity: int = 64
    session_start_timeout: float = 3.0
    session_stop_timeout: float = 2.0

    def __post_init__(self) -> None:
        self.max_duration_seconds = _optional_duration(self.max_duration_seconds)
        self.min_duration_seconds = _optional_duration(self.min_duration_seconds)
        self.sample_rate = max(1, int(self.sample_rate))
        self.chunk_frames = max(1, int(self.chunk_frames))
        self.preferred_channels = max(1, int(self.preferred_channels))
        self.buffer_capacity = max(1, int(self.buffer_capacity))
        if self.meter_time_constant <= 0:
            raise ValueError("meter_time_constant must be positive")

    def recording_limits(self) -> dict[str, float | None]:
        """Limits as reported to the calling form (min is a hint only)."""
        return {
            "maxDurationSeconds": self.max_duration_seconds,
            "minDurationSeconds": self.min_duration_seconds,
        }

    @classmethod
    def from_args(cls, args: Any) -> "RecorderSettings":
        """Create a settings instance from an argparse namespace."""

        defaults = cls()

        output_dir = getattr(args, "output_dir", None)
        if not isinstance(output_dir, Path):
            output_dir = Path(str(output_dir or defaults.output_dir))

        log_file = getattr(args, "log_file", None)
        if log_file is not None and not isinstance(log_file, Path):
            log_file = Path(str(log_file))

        device_id = getattr(args, "device", None)

        return cls(
            sample_rate=int(getattr(args, "sample_rate", defaults.sample_rate)),
            chunk_frames=int(getattr(args, "chunk_frames", defaults.chunk_frames)),
            preferred_channels=int(getattr(args, "channels", defaults.preferred_channels)),
            max_duration_seconds=getattr(args, "max_duration", defaults.max_duration_seconds),
            min_duration_seconds=getattr(args, "min_duration", defaults.min_duration_seconds),
            device_id=str(device_id) if device_id not in (None, "") else None,
            output_dir=output_dir,
            file_prefix=str(getattr(args, "file_prefix", None) or defaults.file_prefix),
            log_level=str(getattr(args, "log_level", defaults.log_level)),
            log_file=log_file,
            console_output=bool(getattr(args, "console_output", defaults.console_output)),
            meter_time_constant=float(
                getattr(args, "meter_time_constant", defaults.meter_time_constant)
            ),
            true_peak_oversample=int(
                getattr(args, "true_peak_oversample", defaults.true_peak_oversample)
            ),
            low_amplitude_threshold=float(
                getattr(args, "low_amplitude_threshold", defaults.low_amplitude_threshold)
            ),
            buffer_capacity=int(getattr(args, "buffer_capacity", defaults.buffer_capacity)),
            session_start_timeout=float(
                getattr(args, "session_start_timeout", defaults.session_start_timeout)
            ),
            session_stop_timeout=float(
                getattr(args, "session_stop_timeout", defaults.session_stop_timeout)
            ),
        )


def _optional_duration(value: Any) -> float | None:
    if value is None or value == "":
        return None
    seconds = float(value)
    return seconds if seconds > 0 else None


def read_config_file(path: Path) -> dict[str, object]:
    """Load key/value pairs from ``config.txt`` style files."""

    config: dict[str, object] = {}
    if not path.exists():
        return config

    text = path.read_text(encoding="utf-8")
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = [part.strip() for part in line.split("=", 1)]
        if not key:
            continue
        lowered = value.lower()
        if lowered in {"true", "yes", "on"}:
            config[key] = True
        elif lowered in {"false", "no", "off"}:
            config[key] = False
        else:
            try:
                if "." in value:
                    config[key] = float(value)
                else:
                    config[key] = int(value)
            except ValueError:
                config[key] = value
    return config


def _config_value(config: Mapping[str, object], key: str, fallback: Any) -> Any:
    value = config.get(key, fallback)
    if isinstance(value, str) and (
        isinstance(fallback, Path)
        or key.endswith("_dir")
        or key.endswith("_file")
    ):
        return Path(value)
    if isinstance(fallback, Path):
        return Path(str(value))
    return value


def build_arg_parser(config: Mapping[str, object]) -> argparse.ArgumentParser:
    """Create the CLI parser with defaults sourced from the config file."""

    defaults = RecorderSettings()
    parser = argparse.ArgumentParser(
        prog="response_audio",
        description="Record one spoken response to a 16-bit mono WAV file",
    )

    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="Print available microphones and exit",
    )
    parser.add_argument(
        "--device",
        type=str,
        default=_config_value(config, "device", defaults.device_id),
        help="Microphone id (see --list-devices); defaults to the first input",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (otherwise wait for Ctrl+C)",
    )
    parser.add_argument(
        "--max-duration",
        type=float,
        default=_config_value(config, "max_duration_seconds", defaults.max_duration_seconds),
        help="Hard limit; the recording stops automatically when reached",
    )
    parser.add_argument(
        "--min-duration",
        type=float,
        default=_config_value(config, "min_duration_seconds", defaults.min_duration_seconds),
        help="Advisory minimum length (reported, never enforced)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=_config_value(config, "output_dir", defaults.output_dir),
        help="Directory where recordings are written",
    )
    parser.add_argument(
        "--file-prefix",
        type=str,
        default=_config_value(config, "file_prefix", defaults.file_prefix),
        help="Prefix for generated file names",
    )
    parser.add_argument(
        "--sample-rate",
        type=int,
        default=_config_value(config, "sample_rate", defaults.sample_rate),
        help="Requested sample rate (Hz); the device may choose another",
    )
    parser.add_argument(
        "--chunk-frames",
        type=int,
        default=_config_value(config, "chunk_frames", defaults.chunk_frames),
        help="Frames per device callback",
    )
    parser.add_argument(
        "--channels",
        type=int,
        default=_config_value(config, "preferred_channels", defaults.preferred_channels),
        help="Preferred input channel count (downmixed to mono)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=_config_value(config, "log_level", defaults.log_level),
        help="Logging verbosity",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=_config_value(config, "log_file", defaults.log_file),
        help="Optional explicit log file path",
    )

    console_group = parser.add_mutually_exclusive_group()
    console_group.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=_config_value(config, "console_output", defaults.console_output),
        help="Enable console logging",
    )
    console_group.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Disable console logging",
    )

    return parser


def parse_cli_args(
    argv: list[str] | None = None,
    *,
    config_path: Path,
) -> argparse.Namespace:
    """Parse CLI arguments using configuration defaults."""

    config = read_config_file(config_path)
    parser = build_arg_parser(config)
    return parser.parse_args(argv)


__all__ = [
    "RecorderSettings",
    "build_arg_parser",
    "parse_cli_args",
    "read_config_file",
]
