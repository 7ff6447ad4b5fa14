"""
Configuration loader module for copper-sync.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Validation of known keys, types and ranges
- Defaults that CLI arguments can override
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from copper_sync.api.base import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_REQUEST_TIMEOUT,
)
from copper_sync.api.copper_api import (
    DEFAULT_COPPER_BASE_URL,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
)
from copper_sync.api.mailerlite_api import DEFAULT_MAILERLITE_BASE_URL
from copper_sync.sync.engine import DEFAULT_GROUP_NAME_TEMPLATE
from copper_sync.sync.membership import DEFAULT_MAX_CONCURRENCY, MAX_CONCURRENCY_LIMIT
from copper_sync.utils.paths import CONFIG_DIR_ENV_VAR, DEFAULT_CONFIG_DIR

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Values used when neither the config file nor the CLI sets a key
DEFAULT_SETTINGS: dict[str, Any] = {
    "copper_base_url": DEFAULT_COPPER_BASE_URL,
    "mailerlite_base_url": DEFAULT_MAILERLITE_BASE_URL,
    "page_size": DEFAULT_PAGE_SIZE,
    "max_pages": DEFAULT_MAX_PAGES,
    "max_concurrency": DEFAULT_MAX_CONCURRENCY,
    "api_max_retries": DEFAULT_MAX_RETRIES,
    "api_initial_retry_delay": DEFAULT_INITIAL_RETRY_DELAY,
    "api_max_retry_delay": DEFAULT_MAX_RETRY_DELAY,
    "request_timeout": DEFAULT_REQUEST_TIMEOUT,
    "group_name_template": DEFAULT_GROUP_NAME_TEMPLATE,
    "verbose": False,
    "demo_mode": False,
    "log_retention_count": 10,
}

# Expected type for every known key
VALID_KEYS: dict[str, type[Any] | tuple[type[Any], ...]] = {
    "copper_base_url": str,
    "mailerlite_base_url": str,
    "page_size": int,
    "max_pages": int,
    "copper_contact_type_ids": list,
    "max_concurrency": int,
    "api_max_retries": int,
    "api_initial_retry_delay": (int, float),
    "api_max_retry_delay": (int, float),
    "request_timeout": (int, float),
    "group_name_template": str,
    "verbose": bool,
    "demo_mode": bool,
    "log_dir": str,
    "log_retention_count": int,
}

# Inclusive integer ranges, None meaning unbounded
INT_RANGES: dict[str, tuple[int, int | None]] = {
    "page_size": (1, MAX_PAGE_SIZE),
    "max_pages": (1, None),
    "max_concurrency": (1, MAX_CONCURRENCY_LIMIT),
    "api_max_retries": (1, None),
    "log_retention_count": (0, None),
}

# Values that must be strictly positive
POSITIVE_NUMBER_KEYS = [
    "api_initial_retry_delay",
    "api_max_retry_delay",
    "request_timeout",
]

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.copper-sync/ or $COPPER_SYNC_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        else:
            env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
            self.config_dir = Path(env_dir) if env_dir else DEFAULT_CONFIG_DIR

        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Configuration values, or an empty dict if the file doesn't exist

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration values, or an empty dict if the file doesn't exist
            or is empty

        Raises:
            ConfigError: If the file cannot be read, parsed, or is not a mapping
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if config is None:
            logger.debug(f"Configuration file is empty: {path}")
            return {}

        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Unknown keys are ignored with a debug message.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            if key not in VALID_KEYS:
                logger.debug(f"Ignoring unknown configuration key: {key}")
                continue

            expected_type = VALID_KEYS[key]
            # bool is an int subclass; only accept it where bool is expected
            wrong_bool = isinstance(value, bool) and expected_type is not bool
            if wrong_bool or not isinstance(value, expected_type):
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                raise ConfigError(
                    f"Invalid type for '{key}': expected {type_name}, "
                    f"got {type(value).__name__}"
                )

        for key, (low, high) in INT_RANGES.items():
            if key not in config:
                continue
            value = config[key]
            if value < low or (high is not None and value > high):
                bound = f"between {low} and {high}" if high is not None else f">= {low}"
                raise ConfigError(f"{key} must be {bound}, got {value}")

        for key in POSITIVE_NUMBER_KEYS:
            if key in config and config[key] <= 0:
                raise ConfigError(f"{key} must be > 0, got {config[key]}")

        for type_id in config.get("copper_contact_type_ids", []):
            if isinstance(type_id, bool) or not isinstance(type_id, int):
                raise ConfigError(
                    f"copper_contact_type_ids must hold integers, got {type_id!r}"
                )

        if "group_name_template" in config:
            template = config["group_name_template"]
            if "{tag}" not in template:
                raise ConfigError("group_name_template must contain '{tag}'")
            try:
                template.format(tag="tag", mode="ANY")
            except (KeyError, IndexError, ValueError) as e:
                raise ConfigError(
                    f"group_name_template may only use {{tag}} and {{mode}}: {e}"
                ) from e

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Returns:
            Validated configuration dictionary

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config


def with_defaults(config: dict[str, Any]) -> dict[str, Any]:
    """Overlay a loaded configuration onto DEFAULT_SETTINGS."""
    return {**DEFAULT_SETTINGS, **config}


def copper_search_filter(settings: dict[str, Any]) -> dict[str, Any]:
    """Build the people/search filter selected by the settings."""
    search_filter: dict[str, Any] = {}
    if settings.get("copper_contact_type_ids"):
        search_filter["contact_type_ids"] = list(settings["copper_contact_type_ids"])
    return search_filter
