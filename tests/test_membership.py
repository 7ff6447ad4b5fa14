"""
Tests for bounded-concurrency membership synchronization.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from copper_sync.api.demo import DemoMailerLiteAPI
from copper_sync.api.mailerlite_api import MailerLiteAPIError
from copper_sync.sync.group import DestinationGroup
from copper_sync.sync.membership import (
    MAX_CONCURRENCY_LIMIT,
    MembershipSynchronizer,
    MembershipSyncError,
)

GROUP = DestinationGroup(id="g1", name="Copper - VIP (ANY)")


def _failing_destination(bad_emails):
    destination = MagicMock()

    def upsert(email, fields, group_ids):
        if email in bad_emails:
            raise MailerLiteAPIError("Subscriber rejected", status_code=422)
        return {"email": email}

    destination.upsert_subscriber.side_effect = upsert
    return destination


class TestSyncMembers:
    """Tests for MembershipSynchronizer.sync_members()."""

    def test_partial_failure(self, make_contact):
        """Test five contacts where one has no email and one is rejected."""
        contacts = [
            make_contact(1),
            make_contact(2),
            make_contact(3, email=None),
            make_contact(4),
            make_contact(5),
        ]
        destination = _failing_destination({"contact4@example.com"})

        result = MembershipSynchronizer(destination).sync_members(GROUP, contacts)

        assert result.added_count == 3
        assert len(result.errors) == 1
        assert result.errors[0].identifier == "contact4@example.com"
        assert result.errors[0].reason == "Subscriber rejected"
        assert [c.id for c in result.skipped] == [3]
        assert destination.upsert_subscriber.call_count == 4

    def test_every_contact_attempted_once(self, make_contact):
        """Test that failures do not stop the rest of the batch."""
        contacts = [make_contact(n) for n in range(1, 11)]
        bad = {f"contact{n}@example.com" for n in (2, 5, 9)}
        destination = _failing_destination(bad)

        result = MembershipSynchronizer(destination, max_concurrency=3).sync_members(
            GROUP, contacts
        )

        attempted = [c.args[0] for c in destination.upsert_subscriber.call_args_list]
        assert sorted(attempted) == sorted(c.email for c in contacts)
        assert result.added_count == 7
        assert result.attempted == 10

    def test_errors_in_input_order(self, make_contact):
        """Test that reported errors follow the cohort order."""
        contacts = [make_contact(n) for n in range(1, 7)]
        bad = {f"contact{n}@example.com" for n in (6, 2, 4)}

        result = MembershipSynchronizer(
            _failing_destination(bad), max_concurrency=6
        ).sync_members(GROUP, contacts)

        assert [e.contact_id for e in result.errors] == [2, 4, 6]

    def test_payload_sent(self, make_contact):
        """Test that the group id and subscriber fields are passed through."""
        destination = MagicMock()
        contact = make_contact(1, name="Jane", tags=["VIP", "Events"])

        MembershipSynchronizer(destination).sync_members(GROUP, [contact])

        destination.upsert_subscriber.assert_called_once_with(
            "contact1@example.com",
            {"name": "Jane", "copper_id": "1", "tags": "VIP, Events"},
            ["g1"],
        )

    def test_repeated_ids_attempted_once(self, make_contact):
        """Test that a contact listed twice is upserted once."""
        destination = MagicMock()
        contact = make_contact(1)

        result = MembershipSynchronizer(destination).sync_members(
            GROUP, [contact, contact]
        )

        assert result.added_count == 1
        assert destination.upsert_subscriber.call_count == 1

    def test_no_syncable_contacts(self, make_contact):
        """Test a cohort where nobody has an email."""
        destination = MagicMock()

        result = MembershipSynchronizer(destination).sync_members(
            GROUP, [make_contact(1, email=None), make_contact(2, email="  ")]
        )

        assert result.added_count == 0
        assert result.errors == []
        assert len(result.skipped) == 2
        destination.upsert_subscriber.assert_not_called()

    def test_unexpected_exception_collected(self, make_contact):
        """Test that any per-contact exception becomes a collected error."""
        destination = MagicMock()
        destination.upsert_subscriber.side_effect = RuntimeError("socket closed")

        result = MembershipSynchronizer(destination).sync_members(
            GROUP, [make_contact(1)]
        )

        assert result.added_count == 0
        assert isinstance(result.errors[0], MembershipSyncError)
        assert result.errors[0].to_dict() == {
            "identifier": "contact1@example.com",
            "reason": "socket closed",
        }

    def test_idempotent_against_demo_destination(self, make_contact):
        """Test that re-running a batch keeps one membership per email."""
        destination = DemoMailerLiteAPI()
        group = destination.create_group("G")
        contacts = [make_contact(1), make_contact(2)]
        synchronizer = MembershipSynchronizer(destination)

        synchronizer.sync_members(group, contacts)
        second = synchronizer.sync_members(group, contacts)

        assert second.added_count == 2
        assert destination.members_of(group.id) == {
            "contact1@example.com",
            "contact2@example.com",
        }

    def test_concurrency_bounded(self, make_contact):
        """Test that no more than max_concurrency upserts run at once."""
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def upsert(email, fields, group_ids):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return {}

        destination = MagicMock()
        destination.upsert_subscriber.side_effect = upsert

        result = MembershipSynchronizer(destination, max_concurrency=2).sync_members(
            GROUP, [make_contact(n) for n in range(8)]
        )

        assert result.added_count == 8
        assert state["peak"] <= 2


class TestMembershipSynchronizerSetup:
    """Tests for constructor validation."""

    def test_zero_concurrency_rejected(self):
        with pytest.raises(ValueError, match="max_concurrency"):
            MembershipSynchronizer(MagicMock(), max_concurrency=0)

    def test_concurrency_capped(self):
        synchronizer = MembershipSynchronizer(MagicMock(), max_concurrency=500)
        assert synchronizer.max_concurrency == MAX_CONCURRENCY_LIMIT
