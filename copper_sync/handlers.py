"""
Inbound sync request handling.

Translates a JSON sync request into a cohort synchronization and maps the
outcome to an HTTP-style ``(status, body)`` pair. Any web framework can
call ``handle_sync_request`` from its route.

Accepted request shapes:

    {"cohortSelector": {"tag": "VIP"}, "groupName": "VIP list"}
    {"cohortSelector": {"tags": ["VIP", "Events"], "matchMode": "all"}}
    {"cohortSelector": {"contactIds": [101, 102]}, "groupName": "Picked"}

and the dashboard's older shape:

    {"tagName": "VIP", "contactIds": [101, 102], "filterType": "any"}
"""

import logging
from typing import Any

from copper_sync.api.copper_api import CopperAPIError
from copper_sync.sync.engine import (
    CohortSelector,
    NoMatchingContactsError,
    SyncOrchestrator,
    SyncRequestError,
)
from copper_sync.sync.resolver import GroupResolutionError
from copper_sync.sync.tags import MatchMode

logger = logging.getLogger(__name__)


def _error_body(message: str, details: Any = None) -> dict[str, Any]:
    return {"error": message, "details": details}


def parse_sync_request(
    payload: Any, group_name_template: str | None = None
) -> tuple[CohortSelector, str | None]:
    """
    Build a cohort selector and group name from a request payload.

    Args:
        payload: Decoded JSON request body
        group_name_template: Template used to name id cohorts sent in the
            older ``tagName`` shape

    Returns:
        Tuple of (selector, group_name); group_name is None when omitted

    Raises:
        SyncRequestError: If the payload is malformed
    """
    if not isinstance(payload, dict):
        raise SyncRequestError("Request body must be a JSON object")

    group_name = payload.get("groupName")
    if group_name is not None and not isinstance(group_name, str):
        raise SyncRequestError("groupName must be a string")

    if "cohortSelector" in payload:
        raw = payload["cohortSelector"]
        if not isinstance(raw, dict):
            raise SyncRequestError("cohortSelector must be an object")
        contact_ids = raw.get("contactIds") or []
        tags = raw.get("tags") or []
        if raw.get("tag"):
            tags = [raw["tag"], *tags]
        match_mode = raw.get("matchMode", MatchMode.ANY.value)
    elif "tagName" in payload or "contactIds" in payload:
        contact_ids = payload.get("contactIds") or []
        tag_name = payload.get("tagName")
        match_mode = payload.get("filterType", MatchMode.ANY.value)
        tags = []
        if contact_ids:
            # Ids picked from a tag view are named after that tag
            if group_name is None and isinstance(tag_name, str) and tag_name.strip():
                name_selector = CohortSelector(tags=(tag_name,), match_mode=match_mode)
                if group_name_template:
                    group_name = name_selector.default_group_name(group_name_template)
                else:
                    group_name = name_selector.default_group_name()
        elif tag_name:
            tags = [tag_name]
    else:
        raise SyncRequestError("Request must include cohortSelector")

    if not isinstance(contact_ids, list) or not isinstance(tags, list):
        raise SyncRequestError("contactIds and tags must be lists")
    for contact_id in contact_ids:
        if isinstance(contact_id, bool) or not isinstance(contact_id, (int, str)):
            raise SyncRequestError(f"Invalid contact id: {contact_id!r}")
    if any(not isinstance(tag, str) for tag in tags):
        raise SyncRequestError("Tag names must be strings")
    if contact_ids and tags:
        raise SyncRequestError("Select contacts by ids or by tags, not both")

    if contact_ids:
        return CohortSelector.for_ids(contact_ids), group_name
    try:
        return CohortSelector.for_tags(tags, match_mode), group_name
    except ValueError as e:
        if isinstance(e, SyncRequestError):
            raise
        raise SyncRequestError(f"Invalid match mode: {match_mode!r}") from e


def handle_sync_request(
    payload: Any, orchestrator: SyncOrchestrator
) -> tuple[int, dict[str, Any]]:
    """
    Run one sync request and describe the outcome.

    Returns:
        ``(200, result)`` on success, including runs with per-contact
        errors; ``(400, error)`` for bad requests and empty cohorts;
        ``(502, error)`` for provider failures; ``(500, error)`` otherwise
    """
    try:
        selector, group_name = parse_sync_request(
            payload, orchestrator.group_name_template
        )
        result = orchestrator.synchronize(selector, group_name)
    except SyncRequestError as e:
        logger.warning(f"Rejected sync request: {e}")
        return 400, _error_body(str(e))
    except NoMatchingContactsError as e:
        logger.warning(str(e))
        return 400, _error_body(str(e))
    except CopperAPIError as e:
        logger.error(f"Copper request failed: {e}")
        return 502, _error_body(str(e), getattr(e, "payload", None))
    except GroupResolutionError as e:
        logger.error(f"Group resolution failed: {e}")
        return 502, _error_body(str(e), e.payload)
    except Exception as e:
        logger.exception(f"Sync request failed: {e}")
        return 500, _error_body("Internal error during sync", str(e))

    body = {"ok": True, "message": result.summary(), **result.to_dict()}
    return 200, body
