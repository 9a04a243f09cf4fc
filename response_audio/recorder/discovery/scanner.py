"""
Capture device enumeration using sounddevice.

Lists every input-capable device once access to the audio host has been
obtained; the first device is the default selection.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import sounddevice as sd

from response_audio.core.logging_utils import get_module_logger

from ..domain import AudioDevice, DeviceNotFound, PermissionDenied

logger = get_module_logger("DeviceEnumerator")

QueryDevices = Callable[[], Any]


def fallback_label(device_id: str) -> str:
    return f"Microphone {device_id[:8]}"


class DeviceEnumerator:
    """
    Lists available capture devices.

    Usage:
        enumerator = DeviceEnumerator()
        devices = await enumerator.list_devices_async()
        mic = enumerator.get_device(devices[0].device_id)
    """

    def __init__(self, query_devices: Optional[QueryDevices] = None) -> None:
        self._query_devices = query_devices or sd.query_devices
        self._devices: dict[str, AudioDevice] = {}
        self._access_granted = False

    @property
    def devices(self) -> list[AudioDevice]:
        """Devices found by the most recent scan, in host order."""
        return list(self._devices.values())

    @property
    def access_granted(self) -> bool:
        return self._access_granted

    def list_devices(self) -> list[AudioDevice]:
        """Query the host and return every device with at least one input channel.

        Raises:
            PermissionDenied: If the audio host refuses the query.
        """
        try:
            raw_devices = self._query_devices()
        except sd.PortAudioError as exc:
            logger.error("Audio device query failed: %s", exc)
            raise PermissionDenied(f"Audio device access refused: {exc}") from exc
        self._access_granted = True

        found: dict[str, AudioDevice] = {}
        for index, info in enumerate(raw_devices):
            channels = int(info.get("max_input_channels", 0) or 0)
            if channels <= 0:
                continue
            device_id = str(info.get("index", index))
            label = str(info.get("name") or "").strip() or fallback_label(device_id)
            hostapi = info.get("hostapi")
            sample_rate = info.get("default_samplerate")
            found[device_id] = AudioDevice(
                device_id=device_id,
                label=label,
                group_id=str(hostapi) if hostapi is not None else None,
                channels=channels,
                default_sample_rate=float(sample_rate) if sample_rate else None,
            )

        added = found.keys() - self._devices.keys()
        lost = self._devices.keys() - found.keys()
        for device_id in sorted(added):
            logger.info(
                "Audio input found: %s (id=%s, channels=%d)",
                found[device_id].label,
                device_id,
                found[device_id].channels,
            )
        for device_id in sorted(lost):
            logger.info("Audio input lost: %s (id=%s)", self._devices[device_id].label, device_id)

        self._devices = found
        return self.devices

    async def list_devices_async(self) -> list[AudioDevice]:
        return await asyncio.to_thread(self.list_devices)

    def default_device(self) -> AudioDevice | None:
        if not self._access_granted:
            self.list_devices()
        devices = self.devices
        return devices[0] if devices else None

    def get_device(self, device_id: str) -> AudioDevice:
        """Return a known device, rescanning once before giving up.

        Raises:
            DeviceNotFound: If no input device has ``device_id``.
        """
        device = self._devices.get(str(device_id))
        if device is None:
            self.list_devices()
            device = self._devices.get(str(device_id))
        if device is None:
            raise DeviceNotFound(f"No audio input with id '{device_id}'")
        return device


__all__ = ["DeviceEnumerator", "fallback_label"]
