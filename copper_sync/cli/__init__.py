"""CLI package for copper_sync."""

from copper_sync.cli.formatters import (
    show_groups,
    show_sync_result,
    show_tag_contacts,
    show_tag_counts,
)
from copper_sync.cli.main import (
    DEFAULT_CONFIG_FILE,
    build_orchestrator,
    build_providers,
    cli,
    get_config_dir,
)
from copper_sync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_CONFIG_FILE",
    "build_orchestrator",
    "build_providers",
    "cli",
    "get_config_dir",
    "show_groups",
    "show_sync_result",
    "show_tag_contacts",
    "show_tag_counts",
]
