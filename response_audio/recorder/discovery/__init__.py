"""Capture device discovery."""

from .scanner import DeviceEnumerator, fallback_label

__all__ = ["DeviceEnumerator", "fallback_label"]
