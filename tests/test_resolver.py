"""
Tests for destination group get-or-create.
"""

import threading
from unittest.mock import MagicMock

import pytest

from copper_sync.api.demo import DemoMailerLiteAPI
from copper_sync.api.mailerlite_api import MailerLiteAPIError
from copper_sync.sync.group import DestinationGroup
from copper_sync.sync.resolver import GroupResolutionError, GroupResolver


class TestResolveGroup:
    """Tests for GroupResolver.resolve_group()."""

    def test_creates_missing_group(self):
        """Test that an absent group is created."""
        destination = DemoMailerLiteAPI()

        group = GroupResolver(destination).resolve_group("Copper - VIP (ANY)")

        assert group.name == "Copper - VIP (ANY)"
        assert [g.name for g in destination.list_groups()] == ["Copper - VIP (ANY)"]

    def test_idempotent(self):
        """Test that resolving twice returns the same group and creates once."""
        destination = DemoMailerLiteAPI()
        resolver = GroupResolver(destination)

        first = resolver.resolve_group("Copper - VIP (ANY)")
        second = resolver.resolve_group("Copper - VIP (ANY)")

        assert first.id == second.id
        assert len(destination.list_groups()) == 1

    def test_existing_group_reused(self):
        """Test that an existing group is returned without a create call."""
        destination = MagicMock()
        destination.list_groups.return_value = [
            DestinationGroup(id="1", name="Other"),
            DestinationGroup(id="2", name="Copper - VIP (ANY)"),
        ]

        group = GroupResolver(destination).resolve_group("Copper - VIP (ANY)")

        assert group.id == "2"
        destination.create_group.assert_not_called()

    def test_name_match_is_case_sensitive(self):
        """Test that a differently cased name counts as absent."""
        destination = DemoMailerLiteAPI()
        destination.create_group("copper - vip (any)")

        group = GroupResolver(destination).resolve_group("Copper - VIP (ANY)")

        assert group.name == "Copper - VIP (ANY)"
        assert len(destination.list_groups()) == 2

    def test_listing_failure_does_not_create(self):
        """Test that a failed lookup raises and never creates a group."""
        destination = MagicMock()
        destination.list_groups.side_effect = MailerLiteAPIError(
            "boom", status_code=500, payload={"message": "Server Error"}
        )

        with pytest.raises(GroupResolutionError) as exc_info:
            GroupResolver(destination).resolve_group("Copper - VIP (ANY)")

        assert exc_info.value.group_name == "Copper - VIP (ANY)"
        assert exc_info.value.payload == {"message": "Server Error"}
        destination.create_group.assert_not_called()

    def test_create_failure_raises(self):
        """Test that a failed create surfaces the provider payload."""
        destination = MagicMock()
        destination.list_groups.return_value = []
        destination.create_group.side_effect = MailerLiteAPIError(
            "invalid", status_code=422, payload={"errors": {"name": ["too long"]}}
        )

        with pytest.raises(GroupResolutionError, match="Could not create") as exc_info:
            GroupResolver(destination).resolve_group("X" * 300)

        assert exc_info.value.payload == {"errors": {"name": ["too long"]}}

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, name):
        """Test that a blank group name is refused before any call."""
        destination = MagicMock()

        with pytest.raises(GroupResolutionError, match="must not be empty"):
            GroupResolver(destination).resolve_group(name)

        destination.list_groups.assert_not_called()

    def test_concurrent_resolves_create_once(self):
        """Test that threads resolving one name share a single group."""
        destination = DemoMailerLiteAPI()
        resolver = GroupResolver(destination)
        results = []

        def worker():
            results.append(resolver.resolve_group("Copper - VIP (ANY)"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({g.id for g in results}) == 1
        assert len(destination.list_groups()) == 1
        assert resolver._locks == {}

    def test_locks_released_for_each_name(self):
        """Test that resolved names leave no lock behind, even on failure."""
        destination = DemoMailerLiteAPI()
        resolver = GroupResolver(destination)

        for index in range(50):
            resolver.resolve_group(f"Copper - Tag {index} (ANY)")

        destination.list_groups = MagicMock(side_effect=MailerLiteAPIError("boom"))
        with pytest.raises(GroupResolutionError):
            resolver.resolve_group("Copper - Other (ANY)")

        assert resolver._locks == {}


class TestFindGroup:
    """Tests for GroupResolver.find_group()."""

    def test_absent_returns_none(self):
        """Test that a missing name returns None."""
        assert GroupResolver(DemoMailerLiteAPI()).find_group("Nope") is None
