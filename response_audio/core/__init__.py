"""Cross-cutting helpers shared by the recorder packages."""

from .logging_config import configure_logging
from .logging_utils import ComponentLogger, component_logger, get_module_logger

__all__ = [
    "ComponentLogger",
    "component_logger",
    "configure_logging",
    "get_module_logger",
]
