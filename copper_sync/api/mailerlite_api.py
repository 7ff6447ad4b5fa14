"""
MailerLite API wrapper for group and subscriber operations.

Provides the destination side of the pipeline:
- Listing groups across pages
- Creating groups
- Upserting subscribers with group membership
"""

import logging
from typing import Any

import requests

from copper_sync.api.base import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_REQUEST_TIMEOUT,
    APIRequestError,
    JSONAPIClient,
    SubscriberDestination,
)
from copper_sync.sync.group import DestinationGroup

DEFAULT_MAILERLITE_BASE_URL = "https://connect.mailerlite.com/api"

# Groups requested per page when listing
DEFAULT_GROUP_PAGE_SIZE = 100

# Upper bound on group pages per listing
DEFAULT_MAX_GROUP_PAGES = 50

logger = logging.getLogger(__name__)


class MailerLiteAPIError(Exception):
    """
    Raised when a MailerLite API operation fails.

    Attributes:
        status_code: HTTP status, None for transport errors
        payload: MailerLite's diagnostic response body, when available
    """

    def __init__(
        self, message: str, status_code: int | None = None, payload: Any = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class MailerLiteAPI(JSONAPIClient, SubscriberDestination):
    """
    MailerLite connect API wrapper.

    Usage:
        api = MailerLiteAPI(api_key)

        groups = api.list_groups()
        group = api.create_group("Copper - VIP (ANY)")
        api.upsert_subscriber("jane@example.com", {"name": "Jane"}, [group.id])
    """

    name = "mailerlite"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_MAILERLITE_BASE_URL,
        page_size: int = DEFAULT_GROUP_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_GROUP_PAGES,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ):
        """
        Initialize the MailerLite API wrapper.

        Args:
            api_key: MailerLite API token
            base_url: MailerLite connect API root
            page_size: Groups per page when listing (default 100)
            max_pages: Maximum group pages per listing (default 50)
            max_retries: Maximum attempts per request (default 3)
            initial_retry_delay: Initial backoff delay in seconds
            max_retry_delay: Maximum backoff delay in seconds
            timeout: Per-request timeout in seconds
            session: Optional pre-built requests session
        """
        super().__init__(
            base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            max_retries=max_retries,
            initial_retry_delay=initial_retry_delay,
            max_retry_delay=max_retry_delay,
            timeout=timeout,
            session=session,
        )
        self.page_size = page_size
        self.max_pages = max_pages

    def _call(
        self,
        method: str,
        path: str,
        operation_name: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        idempotent: bool = True,
    ) -> Any:
        """Run a request, converting failures to MailerLiteAPIError."""
        try:
            return self._request(
                method,
                path,
                operation_name,
                json=json,
                params=params,
                idempotent=idempotent,
            )
        except APIRequestError as e:
            raise MailerLiteAPIError(
                str(e), status_code=e.status_code, payload=e.payload
            ) from e

    def list_groups(self) -> list[DestinationGroup]:
        """
        List all subscriber groups.

        Returns:
            Groups in the order MailerLite returned them

        Raises:
            MailerLiteAPIError: If a page fails or pagination never ends
        """
        groups: list[DestinationGroup] = []

        for page in range(1, self.max_pages + 1):
            response = self._call(
                "GET",
                "/groups",
                f"list_groups(page {page})",
                params={"limit": self.page_size, "page": page},
            )

            data = response.get("data") if isinstance(response, dict) else None
            if not isinstance(data, list):
                raise MailerLiteAPIError(
                    f"Unexpected MailerLite groups response on page {page}",
                    payload=response,
                )

            groups.extend(
                DestinationGroup.from_api_response(g)
                for g in data
                if isinstance(g, dict)
            )

            last_page = (response.get("meta") or {}).get("last_page")
            if (
                len(data) < self.page_size
                or (isinstance(last_page, int) and page >= last_page)
            ):
                logger.info(f"Listed {len(groups)} MailerLite groups")
                return groups

        raise MailerLiteAPIError(
            f"MailerLite group listing exceeded {self.max_pages} pages"
        )

    def create_group(self, name: str) -> DestinationGroup:
        """
        Create a new subscriber group.

        Args:
            name: Group name

        Returns:
            The created group

        Raises:
            MailerLiteAPIError: If creation fails or returns no id
        """
        logger.debug(f"Creating MailerLite group: {name}")

        # A re-sent create could leave two groups with the same name
        response = self._call(
            "POST",
            "/groups",
            f"create_group({name})",
            json={"name": name},
            idempotent=False,
        )
        data = response.get("data") if isinstance(response, dict) else None
        if not isinstance(data, dict) or not data.get("id"):
            raise MailerLiteAPIError(
                f"MailerLite did not return an id for group '{name}'",
                payload=response,
            )

        group = DestinationGroup.from_api_response(data)
        logger.info(f"Created MailerLite group: {group.id} ({group.name})")
        return group

    def upsert_subscriber(
        self, email: str, fields: dict[str, Any], group_ids: list[str]
    ) -> dict[str, Any]:
        """
        Create or update a subscriber and add it to groups.

        MailerLite treats a repeated email as an update, so re-adding an
        existing member is not an error.

        Args:
            email: Subscriber email address
            fields: Subscriber fields (name, last_name, company, phone,
                copper_id, tags)
            group_ids: Groups to add the subscriber to

        Returns:
            The subscriber object returned by MailerLite

        Raises:
            MailerLiteAPIError: If MailerLite rejects the subscriber
        """
        body: dict[str, Any] = {"email": email, "groups": list(group_ids)}
        if fields:
            body["fields"] = fields

        response = self._call(
            "POST", "/subscribers", f"upsert_subscriber({email})", json=body
        )
        if isinstance(response, dict) and isinstance(response.get("data"), dict):
            return response["data"]
        return {}
