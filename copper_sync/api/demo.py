"""
In-memory demo providers.

Demo mode is opt-in only (``--demo`` or ``demo_mode: true``). It never
stands in for a live provider because credentials are missing; that case
is a CredentialsError.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from typing import Any

from copper_sync.api.base import ContactSource, SubscriberDestination
from copper_sync.api.mailerlite_api import MailerLiteAPIError
from copper_sync.sync.contact import Contact
from copper_sync.sync.group import DestinationGroup

logger = logging.getLogger(__name__)

DEMO_BANNER = "DEMO MODE: using built-in sample data, no live provider is contacted"

# Raw records in Copper's people/search shape
DEMO_PEOPLE: list[dict[str, Any]] = [
    {
        "id": 1001,
        "name": "Avery Chen",
        "first_name": "Avery",
        "last_name": "Chen",
        "emails": [{"email": "avery.chen@example.com", "category": "work"}],
        "phone_numbers": [{"number": "555-0101", "category": "work"}],
        "company_name": "Chen Family Office",
        "tags": ["VIP", "Newsletter"],
        "date_modified": 1717000000,
    },
    {
        "id": 1002,
        "name": "Jordan Patel",
        "first_name": "Jordan",
        "last_name": "Patel",
        "emails": [{"email": "jordan.patel@example.com", "category": "personal"}],
        "phone_numbers": [],
        "company_name": "Patel Holdings",
        "tags": ["VIP"],
        "date_modified": 1717100000,
    },
    {
        "id": 1003,
        "name": "Sam Rivera",
        "first_name": "Sam",
        "last_name": "Rivera",
        "emails": [],
        "phone_numbers": [{"number": "555-0103", "category": "mobile"}],
        "company_name": "",
        "tags": ["VIP", "Prospect"],
        "date_modified": 1717200000,
    },
    {
        "id": 1004,
        "name": "Morgan Lee",
        "first_name": "Morgan",
        "last_name": "Lee",
        "emails": [{"email": "morgan.lee@example.com", "category": "work"}],
        "phone_numbers": [],
        "company_name": "Lee & Partners",
        "tags": ["Newsletter"],
        "date_modified": 1717300000,
    },
    {
        "id": 1005,
        "name": "Riley Novak",
        "emails": [{"email": "riley.novak@example.com", "category": "work"}],
        "tags": [],
        "date_modified": 1717400000,
    },
]


class DemoCopperAPI(ContactSource):
    """Source provider serving a fixed sample contact set."""

    name = "copper-demo"

    def __init__(self, people: list[dict[str, Any]] | None = None):
        self._people = copy.deepcopy(DEMO_PEOPLE if people is None else people)

    def fetch_all_contacts(
        self, search_filter: dict[str, Any] | None = None
    ) -> list[Contact]:
        if search_filter:
            logger.debug("Demo source ignores provider filters")
        contacts = [Contact.from_api_response(p) for p in self._people]
        logger.info(f"Fetched {len(contacts)} demo contacts")
        return contacts


class DemoMailerLiteAPI(SubscriberDestination):
    """
    Destination provider keeping groups and memberships in memory.

    Upserts are idempotent per (email, group) and reject addresses
    without an ``@`` the way MailerLite answers with a 422.
    """

    name = "mailerlite-demo"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._groups: dict[str, str] = {}
        self._members: dict[str, set[str]] = {}
        self.subscribers: dict[str, dict[str, Any]] = {}

    def list_groups(self) -> list[DestinationGroup]:
        with self._lock:
            return [
                DestinationGroup(
                    id=group_id, name=name, member_count=len(self._members[group_id])
                )
                for group_id, name in self._groups.items()
            ]

    def create_group(self, name: str) -> DestinationGroup:
        with self._lock:
            group_id = f"demo-{next(self._ids)}"
            self._groups[group_id] = name
            self._members[group_id] = set()
        logger.info(f"Created demo group: {group_id} ({name})")
        return DestinationGroup(id=group_id, name=name)

    def upsert_subscriber(
        self, email: str, fields: dict[str, Any], group_ids: list[str]
    ) -> dict[str, Any]:
        if "@" not in email:
            message = "The email must be a valid email address."
            raise MailerLiteAPIError(
                message, status_code=422, payload={"errors": {"email": [message]}}
            )

        with self._lock:
            unknown = [g for g in group_ids if g not in self._groups]
            if unknown:
                raise MailerLiteAPIError(
                    f"Unknown group ids: {', '.join(unknown)}", status_code=422
                )
            subscriber = self.subscribers.setdefault(
                email, {"email": email, "fields": {}, "groups": []}
            )
            subscriber["fields"].update(fields)
            for group_id in group_ids:
                self._members[group_id].add(email)
                if group_id not in subscriber["groups"]:
                    subscriber["groups"].append(group_id)
            return copy.deepcopy(subscriber)

    def members_of(self, group_id: str) -> set[str]:
        """Emails currently in a demo group."""
        with self._lock:
            return set(self._members.get(group_id, set()))
