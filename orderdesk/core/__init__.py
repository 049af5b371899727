"""
Core module initialization.
Exports configuration, logging utilities and the exception hierarchy.
"""

from orderdesk.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from orderdesk.core.exceptions import (
    OrderDeskError,
    ValidationError,
    NotFoundError,
    TransitionError,
    StorageError,
    ExternalServiceError,
    MalformedPayloadError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "OrderDeskError",
    "ValidationError",
    "NotFoundError",
    "TransitionError",
    "StorageError",
    "ExternalServiceError",
    "MalformedPayloadError",
]
