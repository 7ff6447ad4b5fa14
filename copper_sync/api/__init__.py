"""
copper_sync.api - Provider clients

HTTP clients for the Copper source CRM and the MailerLite destination,
plus opt-in in-memory demo providers.
"""

from copper_sync.api.base import ContactSource, SubscriberDestination
from copper_sync.api.copper_api import (
    CopperAPI,
    CopperAPIError,
    PaginationOverrunError,
    ProviderFetchError,
)
from copper_sync.api.mailerlite_api import MailerLiteAPI, MailerLiteAPIError

__all__ = [
    "ContactSource",
    "SubscriberDestination",
    "CopperAPI",
    "CopperAPIError",
    "PaginationOverrunError",
    "ProviderFetchError",
    "MailerLiteAPI",
    "MailerLiteAPIError",
]
