"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from tabletrack.core.config import get_settings, Settings, EnvironmentMode
from tabletrack.core.exceptions import (
    TrackingError,
    ValidationError,
    InvalidTableError,
    ConflictError,
    RateLimitError,
    NotFoundError,
    MappingNotFoundError,
    NotificationDispatchError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "TrackingError",
    "ValidationError",
    "InvalidTableError",
    "ConflictError",
    "RateLimitError",
    "NotFoundError",
    "MappingNotFoundError",
    "NotificationDispatchError",
]
