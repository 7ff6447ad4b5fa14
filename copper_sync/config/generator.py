"""
Configuration file generator for copper-sync.

Writes a commented default config.yaml documenting every option.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Every option is commented out, so the generated file loads as an
    empty configuration and the built-in defaults apply.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Copper to MailerLite Sync Configuration
# =======================================
#
# Default options for copper-sync. CLI arguments always override these.
# Credentials do not belong here: set COPPER_API_KEY, COPPER_USER_EMAIL
# and MAILERLITE_API_KEY, or put them in credentials.json next to this file.

# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for daily log files
# Default: <project>/logs
# log_dir: /var/log/copper-sync

# Number of daily log files to keep
# Default: 10
# log_retention_count: 10


# Source (Copper)
# ---------------

# Default: https://api.copper.com/developer_api/v1
# copper_base_url: https://api.copper.com/developer_api/v1

# Contacts requested per page (1 to 200)
# Default: 200
# page_size: 200

# Pages fetched before giving up on an unterminated result set
# Default: 50
# max_pages: 50

# Only sync people of these Copper contact types (ids from
# GET /contact_types). Leave unset to fetch every person.
# copper_contact_type_ids: [123, 456]


# Destination (MailerLite)
# ------------------------

# Default: https://connect.mailerlite.com/api
# mailerlite_base_url: https://connect.mailerlite.com/api

# Subscriber upserts in flight at once (1 to 20)
# Default: 5
# max_concurrency: 5

# Name of the group created for a tag cohort.
# {tag} is the tag (tags joined with " + "), {mode} is ANY or ALL.
# Default: "Copper - {tag} ({mode})"
# group_name_template: "Copper - {tag} ({mode})"


# HTTP Behavior
# -------------

# Attempts per request on rate limits, server errors and network errors
# Default: 3
# api_max_retries: 3

# Backoff in seconds, doubled per retry and capped at api_max_retry_delay
# Default: 1 / 30
# api_initial_retry_delay: 1
# api_max_retry_delay: 30

# Seconds before a request times out
# Default: 30
# request_timeout: 30


# Demo Mode
# ---------

# Use built-in sample contacts and an in-memory destination.
# Nothing is sent to Copper or MailerLite.
# Default: false
# demo_mode: false
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save the default configuration file to ``config_path``.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite an existing file

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
