"""Component-tagged loggers for the recorder.

Every record is prefixed with the component that produced it, e.g.
``[Recorder.CaptureSession] Input stream started (48000 Hz)``, so a single
log file stays readable when the controller, capture thread and encoder
all write to it.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

ROOT_LOGGER_NAME = "response_audio"


class ComponentLogger(logging.LoggerAdapter):
    """Adapter that tags messages with ``[component]``; formatting stays lazy."""

    def __init__(self, logger: logging.Logger, component: str) -> None:
        super().__init__(logger, {"component": component})
        self.component = component

    def process(self, msg, kwargs):
        return f"[{self.component}] {msg}", kwargs

    def child(self, suffix: str) -> "ComponentLogger":
        return ComponentLogger(self.logger.getChild(suffix), f"{self.component}.{suffix}")


LoggerLike = Union[ComponentLogger, logging.Logger, None]


def get_module_logger(name: Optional[str] = None) -> ComponentLogger:
    """Logger under the ``response_audio`` namespace tagged with ``name``."""
    if not name or name == ROOT_LOGGER_NAME:
        return ComponentLogger(logging.getLogger(ROOT_LOGGER_NAME), "Core")
    if name.startswith(ROOT_LOGGER_NAME + "."):
        name = name[len(ROOT_LOGGER_NAME) + 1:]
    return ComponentLogger(logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}"), name)


def component_logger(parent: LoggerLike, component: str) -> ComponentLogger:
    """Child logger for ``component`` below ``parent`` (``Recorder`` when omitted)."""
    if parent is None:
        parent = get_module_logger("Recorder")
    if isinstance(parent, ComponentLogger):
        return parent.child(component)
    return ComponentLogger(parent.getChild(component), component)


__all__ = ["ComponentLogger", "LoggerLike", "component_logger", "get_module_logger"]
