"""
Destination group resolution.

Finds a destination group by exact name or creates it. The lookup and
the create are two separate calls with no transaction around them, so
two processes resolving the same new name at once can both create a
group. Callers in the same process are serialized per name.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from copper_sync.api.base import SubscriberDestination
from copper_sync.api.mailerlite_api import MailerLiteAPIError
from copper_sync.sync.group import DestinationGroup

logger = logging.getLogger(__name__)


class GroupResolutionError(Exception):
    """
    Raised when a destination group cannot be listed or created.

    Attributes:
        group_name: Name that was being resolved
        payload: Provider diagnostic body, when available
    """

    def __init__(self, message: str, group_name: str, payload: Any = None):
        super().__init__(message)
        self.group_name = group_name
        self.payload = payload


class GroupResolver:
    """
    Get-or-create for destination groups keyed by exact name.

    Usage:
        resolver = GroupResolver(MailerLiteAPI(api_key))
        group = resolver.resolve_group("Copper - VIP (ANY)")
    """

    def __init__(self, destination: SubscriberDestination):
        self.destination = destination
        # name -> [lock, callers holding or waiting on it]
        self._locks: dict[str, list[Any]] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _name_lock(self, name: str) -> Iterator[None]:
        """Hold the per-name lock, dropping it once no caller needs it."""
        with self._locks_guard:
            entry = self._locks.setdefault(name, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[name]

    def find_group(self, name: str) -> DestinationGroup | None:
        """
        Look up a group by exact, case-sensitive name.

        Returns:
            The first group with that name, or None when there is none

        Raises:
            GroupResolutionError: If the groups cannot be listed. Absence is
                never assumed from a failed listing.
        """
        try:
            groups = self.destination.list_groups()
        except MailerLiteAPIError as e:
            raise GroupResolutionError(
                f"Could not list destination groups while resolving '{name}': {e}",
                group_name=name,
                payload=e.payload,
            ) from e

        return next((g for g in groups if g.name == name), None)

    def resolve_group(self, name: str) -> DestinationGroup:
        """
        Return the group called ``name``, creating it if absent.

        Args:
            name: Exact group name

        Returns:
            The existing or newly created group

        Raises:
            GroupResolutionError: If listing or creating fails
        """
        if not name or not name.strip():
            raise GroupResolutionError("Group name must not be empty", group_name=name)

        with self._name_lock(name):
            existing = self.find_group(name)
            if existing is not None:
                logger.info(
                    f"Using existing destination group '{name}' ({existing.id})"
                )
                return existing

            try:
                created = self.destination.create_group(name)
            except MailerLiteAPIError as e:
                raise GroupResolutionError(
                    f"Could not create destination group '{name}': {e}",
                    group_name=name,
                    payload=e.payload,
                ) from e

            logger.info(f"Created destination group '{name}' ({created.id})")
            return created
