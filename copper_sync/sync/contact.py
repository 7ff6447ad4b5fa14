"""
Contact data model for Copper to MailerLite synchronization.

Provides a normalized, provider-agnostic Contact representation with
methods for:
- Converting from Copper people/search records
- Deciding whether a contact can be synced (email is the join key)
- Building the MailerLite subscriber payload
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

# Copper ids are integers, other sources may use strings
ContactId = Union[int, str]

# Keys Copper has used for the address inside an emails[] entry
EMAIL_VALUE_KEYS = ("email", "value", "address")

# Keys Copper has used for the number inside a phone_numbers[] entry
PHONE_VALUE_KEYS = ("number", "number_value", "value")


def _first_value(entries: Any, keys: tuple[str, ...]) -> str | None:
    """
    Return the first non-blank value from a list of Copper sub-records.

    Missing lists, non-list values and blank strings all map to None.
    """
    if not isinstance(entries, list):
        return None

    for entry in entries:
        if isinstance(entry, str):
            value = entry
        elif isinstance(entry, dict):
            value = next((entry[k] for k in keys if entry.get(k)), None)
        else:
            value = None

        if isinstance(value, str) and value.strip():
            return value.strip()

    return None


def _unique_tags(raw_tags: Any) -> list[str]:
    """Deduplicate tags, preserving the order Copper returned them in."""
    if not isinstance(raw_tags, list):
        return []

    seen: set[str] = set()
    tags: list[str] = []
    for tag in raw_tags:
        if not isinstance(tag, str) or not tag or tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
    return tags


def _parse_timestamp(value: Any) -> datetime | None:
    """Convert Copper's unix-seconds timestamp to an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


@dataclass
class Contact:
    """
    Canonical contact snapshot pulled from the source CRM.

    Attributes:
        id: Source-system identifier, unique within the source system
        name: Display name
        email: Primary email address, or None when the contact has none
        phone: Primary phone number, or None when absent
        company: Company name
        tags: Tag labels, deduplicated, in source order
        last_modified: Last modification time in the source system
        first_name: Given name, when the source provides it
        last_name: Family name, when the source provides it
        title: Job title

    Usage:
        contact = Contact.from_api_response(copper_record)

        if contact.is_syncable():
            payload = contact.to_subscriber_fields()
    """

    id: ContactId
    name: str = ""
    email: str | None = None
    phone: str | None = None
    company: str = ""
    tags: list[str] = field(default_factory=list)
    last_modified: datetime | None = None

    first_name: str | None = None
    last_name: str | None = None
    title: str | None = None

    @classmethod
    def from_api_response(cls, record: dict[str, Any]) -> Contact:
        """
        Create a Contact from a Copper people/search record.

        Args:
            record: Dictionary for one person as returned by Copper

        Returns:
            Contact instance populated from the record

        Raises:
            ValueError: If the record has no usable id

        Example record structure::

            {
                'id': 101,
                'name': 'Jane Doe',
                'first_name': 'Jane',
                'last_name': 'Doe',
                'emails': [{'email': 'jane@example.com', 'category': 'work'}],
                'phone_numbers': [{'number': '555-0100', 'category': 'work'}],
                'company_name': 'Acme',
                'title': 'CFO',
                'tags': ['VIP', 'Newsletter'],
                'date_modified': 1700000000
            }
        """
        contact_id = record.get("id")
        if contact_id is None or contact_id == "" or isinstance(contact_id, bool):
            raise ValueError(f"Copper record has no id: {record!r}")

        first_name = record.get("first_name") or None
        last_name = record.get("last_name") or None

        name = record.get("name") or ""
        if not name and (first_name or last_name):
            name = " ".join(p for p in (first_name, last_name) if p)

        return cls(
            id=contact_id,
            name=name,
            email=_first_value(record.get("emails"), EMAIL_VALUE_KEYS),
            phone=_first_value(record.get("phone_numbers"), PHONE_VALUE_KEYS),
            company=record.get("company_name") or "",
            tags=_unique_tags(record.get("tags")),
            last_modified=_parse_timestamp(record.get("date_modified")),
            first_name=first_name,
            last_name=last_name,
            title=record.get("title") or None,
        )

    @property
    def key(self) -> str:
        """Identifier in string form, so 101 and "101" compare equal."""
        return str(self.id)

    @property
    def identifier(self) -> str:
        """Label used in error reports: the email when known, else the id."""
        return self.email or self.key

    def is_syncable(self) -> bool:
        """
        Check if the contact can be pushed to the destination.

        The email address is the join key on the destination side, so a
        contact without one cannot be synced.
        """
        return bool(self.email and self.email.strip())

    def has_tag(self, tag: str) -> bool:
        """Check for an exact (case-sensitive) tag label."""
        return tag in self.tags

    def merge_tags(self, other: Contact) -> None:
        """Union another snapshot's tags into this one, keeping order."""
        for tag in other.tags:
            if tag not in self.tags:
                self.tags.append(tag)

    def to_subscriber_fields(self) -> dict[str, str]:
        """
        Build the MailerLite subscriber fields for this contact.

        Only non-empty values are included so an upsert never blanks a
        field that was filled in on the destination side. ``copper_id``
        links the subscriber back to its CRM record.
        """
        given = self.first_name
        family = self.last_name
        if not given and not family and self.name:
            given = self.name

        fields = {
            "name": given,
            "last_name": family,
            "company": self.company,
            "phone": self.phone,
            "copper_id": self.key,
            "tags": ", ".join(self.tags),
        }
        return {k: v for k, v in fields.items() if v}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output (CLI and tag browsing)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "tags": list(self.tags),
            "lastModified": (
                self.last_modified.isoformat() if self.last_modified else None
            ),
        }

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return (
            f"Contact(id={self.id!r}, name={self.name!r}, "
            f"email={self.email!r}, tags={self.tags!r})"
        )
