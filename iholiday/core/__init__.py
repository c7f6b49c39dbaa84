"""
Core package - Configuration and cross-cutting concerns
"""

from .config import Settings, get_settings, reload_settings
from .errors import BookingFlowError, ExpiredError, NotFoundError

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "BookingFlowError",
    "ExpiredError",
    "NotFoundError"
]
