"""
Copper CRM API wrapper for contact synchronization.

Provides the source side of the pipeline:
- Paged people/search requests with a hard page-count bound
- Normalization of raw person records into canonical Contacts
- De-duplication of records repeated across pages
- Exponential backoff retry for rate limits (via JSONAPIClient)
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
    ContactSource,
    JSONAPIClient,
)
from copper_sync.sync.contact import Contact

DEFAULT_COPPER_BASE_URL = "https://api.copper.com/developer_api/v1"

# Copper rejects page sizes above 200
MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 200

# Upper bound on pages per fetch, 10,000 contacts at the default page size
DEFAULT_MAX_PAGES = 50

# Sort sent with every people/search page, so page boundaries follow one
# ordering for the whole fetch. A search filter may override it.
DEFAULT_SEARCH_SORT = {"sort_by": "date_modified", "sort_direction": "desc"}

# Keys a wrapped people/search response may hold its records under
WRAPPED_RECORD_KEYS = ("data", "people", "results")

logger = logging.getLogger(__name__)


class CopperAPIError(Exception):
    """Raised when a Copper API operation fails."""

    pass


class ProviderFetchError(CopperAPIError):
    """
    Raised when a page of contacts cannot be fetched from Copper.

    Attributes:
        page_index: 1-based page number that failed
        status_code: HTTP status, None for transport or shape errors
        payload: Copper's diagnostic response body, when available
    """

    def __init__(
        self,
        message: str,
        page_index: int,
        status_code: int | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.page_index = page_index
        self.status_code = status_code
        self.payload = payload


class PaginationOverrunError(CopperAPIError):
    """Raised when Copper keeps returning full pages past the page bound."""

    def __init__(self, max_pages: int, page_size: int):
        super().__init__(
            f"Copper returned {max_pages} full pages of {page_size} contacts "
            f"without a short page; refusing to continue paginating"
        )
        self.max_pages = max_pages
        self.page_size = page_size


class CopperAPI(JSONAPIClient, ContactSource):
    """
    Copper developer API wrapper for people operations.

    Attributes:
        page_size: Records requested per page (capped at 200)
        max_pages: Hard upper bound on pages fetched per call

    Usage:
        api = CopperAPI(api_key, user_email)

        # Every contact
        contacts = api.fetch_all_contacts()

        # Provider-side filter merged into the search body
        contacts = api.fetch_all_contacts({"tags": {"names": ["VIP"]}})
    """

    name = "copper"

    def __init__(
        self,
        api_key: str,
        user_email: str,
        base_url: str = DEFAULT_COPPER_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ):
        """
        Initialize the Copper API wrapper.

        Args:
            api_key: Copper API token (X-PW-AccessToken)
            user_email: Email of the Copper user owning the token
            base_url: Copper developer API root
            page_size: Records per page (default 200, the Copper maximum)
            max_pages: Maximum pages fetched before giving up (default 50)
            max_retries: Maximum attempts per request (default 3)
            initial_retry_delay: Initial backoff delay in seconds
            max_retry_delay: Maximum backoff delay in seconds
            timeout: Per-request timeout in seconds
            session: Optional pre-built requests session
        """
        super().__init__(
            base_url,
            headers={
                "X-PW-AccessToken": api_key,
                "X-PW-Application": "developer_api",
                "X-PW-UserEmail": user_email,
                "Content-Type": "application/json",
            },
            max_retries=max_retries,
            initial_retry_delay=initial_retry_delay,
            max_retry_delay=max_retry_delay,
            timeout=timeout,
            session=session,
        )
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.max_pages = max_pages

    def fetch_page(
        self, page_number: int, search_filter: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of raw person records.

        Args:
            page_number: 1-based page number
            search_filter: Extra people/search body fields

        Returns:
            List of raw person records (possibly empty)

        Raises:
            ProviderFetchError: If the request fails or the body has an
                unexpected shape
        """
        body: dict[str, Any] = {**DEFAULT_SEARCH_SORT, **(search_filter or {})}
        body["page_size"] = self.page_size
        body["page_number"] = page_number

        logger.debug(f"Fetching Copper people page {page_number}")

        try:
            response = self._request(
                "POST",
                "/people/search",
                f"people_search(page {page_number})",
                json=body,
            )
        except APIRequestError as e:
            raise ProviderFetchError(
                f"Failed to fetch Copper contacts page {page_number}: {e}",
                page_index=page_number,
                status_code=e.status_code,
                payload=e.payload,
            ) from e

        if isinstance(response, list):
            return response

        if isinstance(response, dict):
            for key in WRAPPED_RECORD_KEYS:
                if isinstance(response.get(key), list):
                    return response[key]

        raise ProviderFetchError(
            f"Unexpected Copper response shape on page {page_number}: "
            f"{type(response).__name__}",
            page_index=page_number,
            payload=response,
        )

    def fetch_all_contacts(
        self, search_filter: dict[str, Any] | None = None
    ) -> list[Contact]:
        """
        Fetch every contact, paginating until a short or empty page.

        Records repeated across pages are merged by id, unioning their tags.

        Args:
            search_filter: Extra people/search body fields

        Returns:
            Contacts in discovery order, one per id

        Raises:
            ProviderFetchError: If any page fails
            PaginationOverrunError: If max_pages full pages were returned
        """
        contacts: dict[str, Contact] = {}
        total_records = 0

        for page_number in range(1, self.max_pages + 1):
            records = self.fetch_page(page_number, search_filter)
            total_records += len(records)

            for record in records:
                if not isinstance(record, dict):
                    logger.warning(
                        f"Skipping non-object Copper record on page {page_number}"
                    )
                    continue
                try:
                    contact = Contact.from_api_response(record)
                except ValueError as e:
                    logger.warning(f"Failed to parse Copper contact: {e}")
                    continue

                existing = contacts.get(contact.key)
                if existing is None:
                    contacts[contact.key] = contact
                else:
                    logger.debug(f"Merging duplicate Copper contact {contact.key}")
                    existing.merge_tags(contact)

            logger.debug(
                f"Page {page_number}: {len(records)} records, "
                f"{len(contacts)} unique contacts so far"
            )

            if len(records) < self.page_size:
                logger.info(
                    f"Fetched {len(contacts)} contacts from Copper "
                    f"({total_records} records over {page_number} pages)"
                )
                return list(contacts.values())

        logger.error(f"Copper pagination exceeded {self.max_pages} pages")
        raise PaginationOverrunError(self.max_pages, self.page_size)
