"""
copper_sync.auth - Provider credentials
"""

from copper_sync.auth.credentials import (
    CredentialsError,
    ProviderCredentials,
    load_credentials,
)

__all__ = ["CredentialsError", "ProviderCredentials", "load_credentials"]
