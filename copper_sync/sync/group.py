"""
DestinationGroup data model for MailerLite group resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Count fields MailerLite has used for group size, most specific first
MEMBER_COUNT_KEYS = ("active_count", "total", "subscribers_count")


@dataclass(frozen=True)
class DestinationGroup:
    """
    A subscriber group owned by the destination email-marketing system.

    The synchronizer only ever creates groups and adds members to them;
    it never renames or deletes one.

    Attributes:
        id: MailerLite group id (always kept as a string)
        name: Group display name, matched exactly and case-sensitively
        member_count: Subscriber count reported by the destination
    """

    id: str
    name: str
    member_count: int = 0

    @classmethod
    def from_api_response(cls, group_data: dict[str, Any]) -> DestinationGroup:
        """
        Create a DestinationGroup from a MailerLite group object.

        Example API response structure::

            {
                'id': '1234567890',
                'name': 'Copper - VIP (ANY)',
                'active_count': 12,
                'sent_count': 0,
                'created_at': '2024-01-01 10:00:00'
            }
        """
        member_count = 0
        for key in MEMBER_COUNT_KEYS:
            value = group_data.get(key)
            if isinstance(value, int) and not isinstance(value, bool):
                member_count = value
                break

        raw_id = group_data.get("id")
        return cls(
            id="" if raw_id is None else str(raw_id),
            name=group_data.get("name") or "",
            member_count=member_count,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {"id": self.id, "name": self.name, "memberCount": self.member_count}
