"""
Core module initialization.
Exports configuration, error types and auth helpers.
"""

from food_delivery.core.config import get_settings, Settings, EnvironmentMode
from food_delivery.core.errors import (
    ServiceError,
    InvalidRequest,
    Unauthorized,
    NotFound,
    InvalidStatus,
    StorageUnavailable,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "ServiceError",
    "InvalidRequest",
    "Unauthorized",
    "NotFound",
    "InvalidStatus",
    "StorageUnavailable",
]
