"""carshow core module.

Shared components used across all services:
- Configuration management
- Cached settings access
"""

from carshow.core.config import (
    AccessSettings,
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    NotificationSettings,
    SessionSettings,
    Settings,
)
from carshow.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "AccessSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "NotificationSettings",
    "SessionSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    "get_settings_safe",
]
