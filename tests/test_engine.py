"""
Tests for the sync orchestrator and its request types.
"""

from unittest.mock import MagicMock

import pytest

from copper_sync.api.copper_api import PaginationOverrunError
from copper_sync.api.demo import DemoCopperAPI, DemoMailerLiteAPI
from copper_sync.api.mailerlite_api import MailerLiteAPIError
from copper_sync.sync.engine import (
    CohortSelector,
    NoMatchingContactsError,
    SyncOrchestrator,
    SyncRequestError,
    SyncResult,
)
from copper_sync.sync.membership import MembershipSynchronizer, MembershipSyncError
from copper_sync.sync.resolver import GroupResolutionError, GroupResolver
from copper_sync.sync.tags import MatchMode

VIP_PEOPLE = [
    {"id": 1, "name": "A", "emails": [{"email": "a@example.com"}], "tags": ["VIP"]},
    {"id": 2, "name": "B", "emails": [{"email": "b@example.com"}], "tags": ["VIP"]},
    {"id": 3, "name": "C", "emails": [], "tags": ["VIP"]},
    {"id": 4, "name": "D", "emails": [{"email": "d@example.com"}], "tags": ["Board"]},
]


def _orchestrator(source, destination, **kwargs):
    return SyncOrchestrator(
        source=source,
        resolver=GroupResolver(destination),
        synchronizer=MembershipSynchronizer(destination, max_concurrency=3),
        **kwargs,
    )


class TestCohortSelector:
    """Tests for CohortSelector validation and naming."""

    def test_for_tag(self):
        selector = CohortSelector.for_tag("VIP")
        assert selector.tags == ("VIP",)
        assert selector.match_mode is MatchMode.ANY
        assert selector.is_tag_based

    def test_for_tags_dedups(self):
        selector = CohortSelector.for_tags(["VIP", "Board", "VIP"], "all")
        assert selector.tags == ("VIP", "Board")
        assert selector.match_mode is MatchMode.ALL

    def test_for_ids(self):
        selector = CohortSelector.for_ids([101, "102", 101])
        assert selector.contact_ids == (101, "102")
        assert not selector.is_tag_based

    def test_needs_exactly_one_kind(self):
        with pytest.raises(SyncRequestError):
            CohortSelector()
        with pytest.raises(SyncRequestError):
            CohortSelector(contact_ids=(1,), tags=("VIP",))

    def test_blank_tag_rejected(self):
        with pytest.raises(SyncRequestError, match="non-empty"):
            CohortSelector.for_tag("  ")

    def test_invalid_id_rejected(self):
        with pytest.raises(SyncRequestError, match="Invalid contact id"):
            CohortSelector.for_ids([1.5])

    def test_invalid_match_mode(self):
        with pytest.raises(SyncRequestError, match="Invalid match mode"):
            CohortSelector(tags=("VIP",), match_mode="most")

    def test_default_group_name(self):
        assert CohortSelector.for_tag("VIP").default_group_name() == "Copper - VIP (ANY)"
        assert (
            CohortSelector.for_tags(["VIP", "Board"], "all").default_group_name()
            == "Copper - VIP + Board (ALL)"
        )
        assert CohortSelector.for_ids([1]).default_group_name() is None

    def test_custom_template(self):
        selector = CohortSelector.for_tag("VIP")
        assert selector.default_group_name("Copper {tag}") == "Copper VIP"


class TestSyncResult:
    """Tests for SyncResult reporting."""

    def test_to_dict(self):
        result = SyncResult(
            group_id="g1",
            group_name="Copper - VIP (ANY)",
            added_count=2,
            errors=(MembershipSyncError("x@example.com", "rejected", 9),),
            skipped=(3,),
            cohort_size=4,
        )
        assert result.to_dict() == {
            "groupId": "g1",
            "groupName": "Copper - VIP (ANY)",
            "addedCount": 2,
            "errors": [{"identifier": "x@example.com", "reason": "rejected"}],
            "skipped": [3],
            "cohortSize": 4,
        }
        assert not result.is_complete
        assert result.failed_count == 1

    def test_summary(self):
        result = SyncResult("g1", "G", 2, skipped=(3,), cohort_size=3)
        assert result.summary() == (
            "2 of 3 contacts synced to 'G'; 0 failed; 1 skipped (no email)"
        )

    def test_demo_flag_serialized(self):
        assert SyncResult("g1", "G", 0, demo=True).to_dict()["demo"] is True


class TestSynchronize:
    """End-to-end tests for SyncOrchestrator.synchronize()."""

    def test_tag_cohort_end_to_end(self):
        """Test a VIP cohort with one contact lacking an email."""
        destination = DemoMailerLiteAPI()
        orchestrator = _orchestrator(DemoCopperAPI(VIP_PEOPLE), destination)

        result = orchestrator.synchronize(CohortSelector.for_tag("VIP"))

        assert result.group_name == "Copper - VIP (ANY)"
        assert result.added_count == 2
        assert list(result.errors) == []
        assert list(result.skipped) == [3]
        assert result.cohort_size == 3
        assert [g.name for g in destination.list_groups()] == ["Copper - VIP (ANY)"]
        assert destination.members_of(result.group_id) == {
            "a@example.com",
            "b@example.com",
        }

    def test_second_run_reuses_group(self):
        """Test that repeating a sync keeps a single destination group."""
        destination = DemoMailerLiteAPI()
        orchestrator = _orchestrator(DemoCopperAPI(VIP_PEOPLE), destination)

        first = orchestrator.synchronize(CohortSelector.for_tag("VIP"))
        second = orchestrator.synchronize(CohortSelector.for_tag("VIP"))

        assert first.group_id == second.group_id
        assert len(destination.list_groups()) == 1

    def test_missing_ids_create_nothing(self):
        """Test that ids matching no contact fail before any group is made."""
        destination = DemoMailerLiteAPI()
        orchestrator = _orchestrator(DemoCopperAPI(VIP_PEOPLE), destination)

        with pytest.raises(NoMatchingContactsError):
            orchestrator.synchronize(CohortSelector.for_ids([101, 102]), "Picked")

        assert destination.list_groups() == []

    def test_unknown_tag_raises(self):
        """Test that a tag with no contacts is an empty cohort."""
        destination = DemoMailerLiteAPI()
        orchestrator = _orchestrator(DemoCopperAPI(VIP_PEOPLE), destination)

        with pytest.raises(NoMatchingContactsError, match="Nobody"):
            orchestrator.synchronize(CohortSelector.for_tag("Nobody"))

        assert destination.list_groups() == []

    def test_id_cohort_matches_across_types(self):
        """Test that string ids select integer-id contacts."""
        destination = DemoMailerLiteAPI()
        orchestrator = _orchestrator(DemoCopperAPI(VIP_PEOPLE), destination)

        result = orchestrator.synchronize(
            CohortSelector.for_ids(["1", "4", "999"]), "Picked"
        )

        assert result.group_name == "Picked"
        assert result.added_count == 2
        assert result.cohort_size == 2

    def test_id_cohort_requires_group_name(self):
        """Test that an id cohort without a name is a bad request."""
        source = MagicMock()
        orchestrator = _orchestrator(source, DemoMailerLiteAPI())

        with pytest.raises(SyncRequestError, match="group name is required"):
            orchestrator.synchronize(CohortSelector.for_ids([1]))

        source.fetch_all_contacts.assert_not_called()

    def test_explicit_group_name_wins(self):
        """Test that a caller-supplied name overrides the template."""
        orchestrator = _orchestrator(DemoCopperAPI(VIP_PEOPLE), DemoMailerLiteAPI())

        result = orchestrator.synchronize(CohortSelector.for_tag("VIP"), " VIPs ")

        assert result.group_name == "VIPs"

    def test_template_applied(self):
        """Test that the configured template names tag cohorts."""
        orchestrator = _orchestrator(
            DemoCopperAPI(VIP_PEOPLE),
            DemoMailerLiteAPI(),
            group_name_template="CRM {tag}",
        )

        result = orchestrator.synchronize(CohortSelector.for_tag("VIP"))

        assert result.group_name == "CRM VIP"

    def test_source_failure_propagates(self):
        """Test that fetch errors abort before resolution."""
        source = MagicMock()
        source.fetch_all_contacts.side_effect = PaginationOverrunError(50, 200)
        destination = MagicMock()

        with pytest.raises(PaginationOverrunError):
            _orchestrator(source, destination).synchronize(
                CohortSelector.for_tag("VIP")
            )

        destination.list_groups.assert_not_called()

    def test_resolution_failure_adds_nobody(self):
        """Test that a failed group lookup stops the run."""
        destination = MagicMock()
        destination.list_groups.side_effect = MailerLiteAPIError("down", 503)

        with pytest.raises(GroupResolutionError):
            _orchestrator(DemoCopperAPI(VIP_PEOPLE), destination).synchronize(
                CohortSelector.for_tag("VIP")
            )

        destination.upsert_subscriber.assert_not_called()

    def test_search_filter_passed_to_source(self):
        """Test that the provider filter reaches the source."""
        source = MagicMock()
        source.fetch_all_contacts.return_value = []
        orchestrator = _orchestrator(
            source, DemoMailerLiteAPI(), search_filter={"tags": ["VIP"]}
        )

        with pytest.raises(NoMatchingContactsError):
            orchestrator.synchronize(CohortSelector.for_tag("VIP"))

        source.fetch_all_contacts.assert_called_once_with({"tags": ["VIP"]})

    def test_demo_result_flagged(self):
        """Test that demo runs are marked in the result."""
        orchestrator = _orchestrator(
            DemoCopperAPI(VIP_PEOPLE), DemoMailerLiteAPI(), demo=True
        )

        result = orchestrator.synchronize(CohortSelector.for_tag("VIP"))

        assert result.demo is True
