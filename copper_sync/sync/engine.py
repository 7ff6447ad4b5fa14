"""
Sync orchestrator for Copper to MailerLite contact synchronization.

Drives one synchronization run: fetch contacts from the source, select
the cohort, resolve the destination group, add the members, and report.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from copper_sync.api.base import ContactSource
from copper_sync.sync.contact import Contact, ContactId
from copper_sync.sync.group import DestinationGroup
from copper_sync.sync.membership import MembershipSynchronizer, MembershipSyncError
from copper_sync.sync.resolver import GroupResolver
from copper_sync.sync.tags import MatchMode, build_tag_index

# Group name used for tag cohorts when the caller gives none
DEFAULT_GROUP_NAME_TEMPLATE = "Copper - {tag} ({mode})"

logger = logging.getLogger(__name__)


class SyncRequestError(ValueError):
    """Raised when a sync request is malformed (selector or group name)."""

    pass


class NoMatchingContactsError(Exception):
    """Raised when the cohort selector matches no fetched contact."""

    def __init__(self, message: str, selector: CohortSelector | None = None):
        super().__init__(message)
        self.selector = selector


@dataclass(frozen=True)
class CohortSelector:
    """
    Which source contacts to synchronize.

    Exactly one of ``contact_ids`` or ``tags`` is set. Multiple tags are
    combined with ``match_mode``.

    Usage:
        CohortSelector.for_tag("VIP")
        CohortSelector.for_tags(["VIP", "Newsletter"], MatchMode.ALL)
        CohortSelector.for_ids([101, 102])
    """

    contact_ids: tuple[ContactId, ...] = ()
    tags: tuple[str, ...] = ()
    match_mode: MatchMode = MatchMode.ANY

    def __post_init__(self) -> None:
        if bool(self.contact_ids) == bool(self.tags):
            raise SyncRequestError(
                "Cohort selector needs either contact ids or tags, not both or neither"
            )
        if any(not isinstance(t, str) or not t.strip() for t in self.tags):
            raise SyncRequestError("Tag names must be non-empty strings")
        for contact_id in self.contact_ids:
            if isinstance(contact_id, bool) or not isinstance(contact_id, (int, str)):
                raise SyncRequestError(f"Invalid contact id: {contact_id!r}")
            if str(contact_id).strip() == "":
                raise SyncRequestError("Contact ids must not be empty")
        try:
            object.__setattr__(self, "match_mode", MatchMode(self.match_mode))
        except ValueError as e:
            raise SyncRequestError(f"Invalid match mode: {self.match_mode!r}") from e

    @classmethod
    def for_tag(cls, tag: str) -> CohortSelector:
        return cls(tags=(tag,))

    @classmethod
    def for_tags(
        cls, tags: Iterable[str], match_mode: MatchMode | str = MatchMode.ANY
    ) -> CohortSelector:
        return cls(tags=tuple(dict.fromkeys(tags)), match_mode=MatchMode(match_mode))

    @classmethod
    def for_ids(cls, contact_ids: Iterable[ContactId]) -> CohortSelector:
        return cls(contact_ids=tuple(dict.fromkeys(contact_ids)))

    @property
    def is_tag_based(self) -> bool:
        return bool(self.tags)

    def default_group_name(
        self, template: str = DEFAULT_GROUP_NAME_TEMPLATE
    ) -> str | None:
        """Group name derived from the tags, or None for an id cohort."""
        if not self.is_tag_based:
            return None
        return template.format(
            tag=" + ".join(self.tags), mode=self.match_mode.value.upper()
        )

    def describe(self) -> str:
        if self.is_tag_based:
            return f"tags {list(self.tags)} (match {self.match_mode.value})"
        return f"{len(self.contact_ids)} explicit contact ids"


@dataclass(frozen=True)
class SyncResult:
    """
    Report of one synchronization run. Never persisted.

    ``errors`` lists per-contact failures; an empty list with
    ``added_count`` smaller than ``cohort_size`` means the remainder was
    skipped for lack of an email.
    """

    group_id: str
    group_name: str
    added_count: int
    errors: tuple[MembershipSyncError, ...] = ()
    skipped: tuple[ContactId, ...] = ()
    cohort_size: int = 0
    demo: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    @property
    def is_complete(self) -> bool:
        """True when every contact with an email was added."""
        return not self.errors

    def summary(self) -> str:
        """One-line human summary, e.g. for a dashboard toast."""
        text = (
            f"{self.added_count} of {self.cohort_size} contacts synced to "
            f"'{self.group_name}'; {self.failed_count} failed"
        )
        if self.skipped:
            text += f"; {len(self.skipped)} skipped (no email)"
        return text

    def to_dict(self) -> dict[str, Any]:
        """JSON shape returned at the inbound boundary."""
        data: dict[str, Any] = {
            "groupId": self.group_id,
            "groupName": self.group_name,
            "addedCount": self.added_count,
            "errors": [e.to_dict() for e in self.errors],
            "skipped": list(self.skipped),
            "cohortSize": self.cohort_size,
        }
        if self.demo:
            data["demo"] = True
        return data


@dataclass
class SyncOrchestrator:
    """
    Entry point for one cohort synchronization.

    Steps run strictly in order: fetch, select, resolve, add members.
    Failures while fetching, selecting or resolving abort the run before
    any member is added; per-contact failures are reported in the result.

    Usage:
        orchestrator = SyncOrchestrator(
            source=CopperAPI(key, email),
            resolver=GroupResolver(mailerlite),
            synchronizer=MembershipSynchronizer(mailerlite, max_concurrency=5),
        )
        result = orchestrator.synchronize(CohortSelector.for_tag("VIP"))
    """

    source: ContactSource
    resolver: GroupResolver
    synchronizer: MembershipSynchronizer
    group_name_template: str = DEFAULT_GROUP_NAME_TEMPLATE
    demo: bool = False
    search_filter: dict[str, Any] = field(default_factory=dict)

    def select_cohort(
        self, contacts: list[Contact], selector: CohortSelector
    ) -> list[Contact]:
        """
        Narrow fetched contacts to the selector's cohort.

        Raises:
            NoMatchingContactsError: If nothing matches
        """
        if selector.is_tag_based:
            index = build_tag_index(contacts)
            cohort = index.select(selector.tags, selector.match_mode)
        else:
            wanted = {str(i) for i in selector.contact_ids}
            seen: set[str] = set()
            cohort = []
            for contact in contacts:
                if contact.key in wanted and contact.key not in seen:
                    seen.add(contact.key)
                    cohort.append(contact)
            missing = wanted - seen
            if missing and cohort:
                logger.warning(
                    f"{len(missing)} requested contact ids not found in source: "
                    f"{', '.join(sorted(missing))}"
                )

        if not cohort:
            raise NoMatchingContactsError(
                f"No contacts matched {selector.describe()}", selector=selector
            )
        return cohort

    def resolve_group_name(
        self, selector: CohortSelector, group_name: str | None
    ) -> str:
        """Explicit name if given, else the template name for tag cohorts."""
        if group_name is not None and group_name.strip():
            return group_name.strip()
        derived = selector.default_group_name(self.group_name_template)
        if derived is None:
            raise SyncRequestError("A group name is required when syncing by contact id")
        return derived

    def synchronize(
        self, selector: CohortSelector, group_name: str | None = None
    ) -> SyncResult:
        """
        Synchronize a cohort of source contacts into a destination group.

        Args:
            selector: Tag or explicit-id cohort
            group_name: Destination group name; derived from the tags when
                omitted for a tag cohort

        Returns:
            SyncResult, even when some or all member adds failed

        Raises:
            SyncRequestError: If the group name is missing or invalid
            CopperAPIError: If the source cannot be paged through
            NoMatchingContactsError: If the selector matches nothing
            GroupResolutionError: If the group cannot be found or created
        """
        name = self.resolve_group_name(selector, group_name)

        if self.demo:
            logger.warning("Running against demo providers; no live data involved")

        logger.info(f"Starting sync of {selector.describe()} into '{name}'")

        contacts = self.source.fetch_all_contacts(self.search_filter or None)
        cohort = self.select_cohort(contacts, selector)
        logger.info(f"Cohort has {len(cohort)} of {len(contacts)} fetched contacts")

        group: DestinationGroup = self.resolver.resolve_group(name)

        membership = self.synchronizer.sync_members(group, cohort)

        result = SyncResult(
            group_id=group.id,
            group_name=group.name or name,
            added_count=membership.added_count,
            errors=tuple(membership.errors),
            skipped=tuple(c.id for c in membership.skipped),
            cohort_size=len(cohort),
            demo=self.demo,
        )
        logger.info(result.summary())
        return result
