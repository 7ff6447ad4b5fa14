"""
Membership synchronization into a destination group.

Upserts each contact as a subscriber of the target group through a
bounded thread pool. Every contact is attempted exactly once; a failure
on one contact is recorded and never stops the others.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any

from copper_sync.api.base import SubscriberDestination
from copper_sync.sync.contact import Contact
from copper_sync.sync.group import DestinationGroup

# Default number of in-flight upserts
DEFAULT_MAX_CONCURRENCY = 5

# Upper bound accepted from configuration
MAX_CONCURRENCY_LIMIT = 20

logger = logging.getLogger(__name__)


class MembershipSyncError(Exception):
    """
    A single contact that could not be added to the destination group.

    Collected into the sync result, never raised past the synchronizer.

    Attributes:
        identifier: Contact email, or the source id when there is no email
        reason: Human-readable failure message
        contact_id: Source id of the contact
    """

    def __init__(self, identifier: str, reason: str, contact_id: Any = None):
        super().__init__(f"{identifier}: {reason}")
        self.identifier = identifier
        self.reason = reason
        self.contact_id = contact_id

    def to_dict(self) -> dict[str, Any]:
        """Serialize as ``{identifier, reason}``."""
        return {"identifier": self.identifier, "reason": self.reason}


@dataclass
class MembershipResult:
    """
    Outcome of one membership batch.

    added_count includes contacts that were already members, since the
    upsert is idempotent. Contacts without an email are listed in
    ``skipped`` and are not errors.
    """

    added_count: int = 0
    errors: list[MembershipSyncError] = field(default_factory=list)
    skipped: list[Contact] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        """Number of upsert calls issued."""
        return self.added_count + len(self.errors)


class MembershipSynchronizer:
    """
    Adds contacts to a destination group with bounded concurrency.

    Attributes:
        destination: Destination provider receiving the upserts
        max_concurrency: Maximum upserts in flight at once

    Usage:
        synchronizer = MembershipSynchronizer(MailerLiteAPI(key), max_concurrency=5)
        result = synchronizer.sync_members(group, contacts)
        print(result.added_count, [e.to_dict() for e in result.errors])
    """

    def __init__(
        self,
        destination: SubscriberDestination,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.destination = destination
        self.max_concurrency = min(max_concurrency, MAX_CONCURRENCY_LIMIT)

    def _upsert(
        self, group: DestinationGroup, contact: Contact
    ) -> MembershipSyncError | None:
        """Upsert one contact, returning its error instead of raising."""
        email = (contact.email or "").strip()
        try:
            self.destination.upsert_subscriber(
                email, contact.to_subscriber_fields(), [group.id]
            )
        except Exception as e:
            logger.warning(
                f"Failed to add contact {contact.key} ({email}) "
                f"to group {group.id}: {e}"
            )
            return MembershipSyncError(contact.identifier, str(e), contact.id)

        logger.debug(f"Added {email} to group {group.id}")
        return None

    def sync_members(
        self, group: DestinationGroup, contacts: list[Contact]
    ) -> MembershipResult:
        """
        Upsert every syncable contact into ``group``.

        Args:
            group: Resolved destination group
            contacts: Cohort contacts; repeated ids are attempted once

        Returns:
            MembershipResult with the success count, per-contact errors in
            input order, and the contacts skipped for lack of an email
        """
        result = MembershipResult()

        unique: dict[str, Contact] = {}
        for contact in contacts:
            unique.setdefault(contact.key, contact)

        syncable: list[Contact] = []
        for contact in unique.values():
            if contact.is_syncable():
                syncable.append(contact)
            else:
                logger.info(f"Skipping contact {contact.key} ({contact.name}): no email")
                result.skipped.append(contact)

        if not syncable:
            logger.info(f"No contacts with an email to add to group {group.id}")
            return result

        workers = min(self.max_concurrency, len(syncable))
        logger.info(
            f"Adding {len(syncable)} contacts to group '{group.name}' "
            f"({workers} concurrent)"
        )

        failures: dict[int, MembershipSyncError] = {}
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="membership"
        ) as pool:
            futures = {
                pool.submit(self._upsert, group, contact): position
                for position, contact in enumerate(syncable)
            }
            for future in as_completed(futures):
                error = future.result()
                if error is None:
                    result.added_count += 1
                else:
                    failures[futures[future]] = error

        result.errors = [failures[p] for p in sorted(failures)]

        logger.info(
            f"Group '{group.name}': {result.added_count} added, "
            f"{len(result.errors)} failed, {len(result.skipped)} skipped (no email)"
        )
        return result
