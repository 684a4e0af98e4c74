"""
Configuration module exports.
"""

from snapcheck.config.settings import (
    MATCH_LEVELS,
    VIEWPORT_SIZES,
    ConfigManager,
    Settings,
    get_config,
    get_settings,
)
from snapcheck.config.store import ConfigurationStore, JsonFileStorage, MemoryStorage

__all__ = [
    "Settings",
    "ConfigManager",
    "get_settings",
    "get_config",
    "MATCH_LEVELS",
    "VIEWPORT_SIZES",
    "ConfigurationStore",
    "MemoryStorage",
    "JsonFileStorage",
]
