"""
copper_sync.utils - Utility module

Common utilities including logging configuration and path resolution.
"""

from copper_sync.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = ["resolve_config_dir", "DEFAULT_CONFIG_DIR"]
