"""
copper_sync.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from copper_sync.config.generator import generate_default_config, save_config_file
from copper_sync.config.loader import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_SETTINGS,
    ConfigError,
    ConfigLoader,
    copper_search_filter,
    with_defaults,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "copper_search_filter",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_SETTINGS",
    "generate_default_config",
    "save_config_file",
    "with_defaults",
]
