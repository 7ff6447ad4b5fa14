"""
Provider credential loading.

Credentials come from environment variables first, then from
``credentials.json`` in the configuration directory:

    {
        "copper_api_key": "...",
        "copper_user_email": "ops@example.com",
        "mailerlite_api_key": "..."
    }

Missing credentials are an error. They never switch the tool to sample
data; demo mode has to be requested explicitly.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from copper_sync.utils import resolve_config_dir

# Credentials file name inside the config directory
CREDENTIALS_FILE = "credentials.json"

# Environment variable for each credential field
ENV_VARS = {
    "copper_api_key": "COPPER_API_KEY",
    "copper_user_email": "COPPER_USER_EMAIL",
    "mailerlite_api_key": "MAILERLITE_API_KEY",
}

logger = logging.getLogger(__name__)


class CredentialsError(Exception):
    """Raised when provider credentials are missing or unreadable."""

    pass


@dataclass(frozen=True)
class ProviderCredentials:
    """
    API credentials for the source and destination providers.

    Attributes:
        copper_api_key: Copper API token
        copper_user_email: Email of the Copper user owning the token
        mailerlite_api_key: MailerLite API token
    """

    copper_api_key: str
    copper_user_email: str
    mailerlite_api_key: str

    def __repr__(self) -> str:
        # Never print tokens
        return (
            f"ProviderCredentials(copper_user_email={self.copper_user_email!r}, "
            f"copper_api_key=***, mailerlite_api_key=***)"
        )


def _read_credentials_file(path: Path) -> dict[str, str]:
    if not path.exists():
        logger.debug(f"Credentials file not found: {path}")
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CredentialsError(f"Failed to read credentials file {path}: {e}") from e

    if not isinstance(data, dict):
        raise CredentialsError(
            f"Credentials file must contain a JSON object, got {type(data).__name__}"
        )
    return {k: v for k, v in data.items() if isinstance(v, str)}


def load_credentials(config_dir: Path | str | None = None) -> ProviderCredentials:
    """
    Load provider credentials.

    Args:
        config_dir: Configuration directory holding credentials.json

    Returns:
        ProviderCredentials with every field set

    Raises:
        CredentialsError: If any credential is missing or the file is invalid
    """
    file_values = _read_credentials_file(resolve_config_dir(config_dir) / CREDENTIALS_FILE)

    values: dict[str, str] = {}
    missing: list[str] = []
    for field_name, env_var in ENV_VARS.items():
        value = os.environ.get(env_var) or file_values.get(field_name, "")
        if not value.strip():
            missing.append(env_var)
        values[field_name] = value.strip()

    if missing:
        raise CredentialsError(
            f"Missing provider credentials: {', '.join(missing)}. Set them in the "
            f"environment or in {CREDENTIALS_FILE}, or run with --demo for sample data."
        )

    return ProviderCredentials(**values)
