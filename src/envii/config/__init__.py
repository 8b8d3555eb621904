"""
Configuration management for Envii.

This module handles loading, validating, and saving configuration settings.
"""

from envii.config.settings import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    Settings,
    default_device_id,
    get_config_path,
    load_config,
    save_config,
)
from envii.errors import ConfigurationError

__all__ = [
    "Settings",
    "load_config",
    "save_config",
    "get_config_path",
    "default_device_id",
    "ConfigurationError",
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_CONFIG_FILE",
]
