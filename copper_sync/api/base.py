"""
Shared HTTP plumbing and provider interfaces.

Provides:
- JSONAPIClient: a requests-based JSON client with exponential backoff
  retry for rate limits, server errors and transport failures
- ContactSource: interface of a source CRM the orchestrator can pull from
- SubscriberDestination: interface of an email-marketing destination
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import requests

if TYPE_CHECKING:
    from copper_sync.sync.contact import Contact
    from copper_sync.sync.group import DestinationGroup

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 30.0  # seconds

# HTTP timeout for a single request
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds

logger = logging.getLogger(__name__)


class APIRequestError(Exception):
    """
    Raised when an HTTP request to a provider fails.

    Attributes:
        status_code: HTTP status of the failed response, None for transport errors
        payload: Decoded response body, kept as the provider's diagnostic
    """

    def __init__(
        self, message: str, status_code: int | None = None, payload: Any = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class RateLimitError(APIRequestError):
    """Raised when rate limit is exceeded and retries are exhausted."""

    pass


def _decode_payload(response: requests.Response) -> Any:
    """Best-effort decode of an error body for diagnostics."""
    try:
        return response.json()
    except ValueError:
        return response.text


class JSONAPIClient:
    """
    Minimal JSON-over-HTTP client with retry and backoff.

    Subclasses supply the base URL and authentication headers and wrap
    APIRequestError into their own error types.

    Attributes:
        base_url: Provider API root, without trailing slash
        session: requests.Session carrying the authentication headers
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(headers)

    def _request(
        self,
        method: str,
        path: str,
        operation_name: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        idempotent: bool = True,
    ) -> Any:
        """
        Execute a request with exponential backoff retry.

        429 responses, 5xx responses and transport errors are retried up to
        max_retries attempts in total. Other 4xx responses fail at once.
        A non-idempotent request is only retried on 429, since a 5xx or a
        lost response may follow a write the server already applied.

        Args:
            method: HTTP method
            path: Path relative to base_url
            operation_name: Name for logging purposes
            json: Optional JSON body
            params: Optional query parameters
            idempotent: False for requests that must not be re-sent after
                the server may have processed them

        Returns:
            Decoded JSON body, or an empty dict for an empty body

        Raises:
            RateLimitError: If retries are exhausted due to rate limits
            APIRequestError: For other failures
        """
        url = f"{self.base_url}{path}"
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1

            try:
                response = self.session.request(
                    method, url, json=json, params=params, timeout=self.timeout
                )
            except requests.RequestException as e:
                if idempotent and not last_attempt:
                    logger.warning(
                        f"{operation_name} transport error ({e}), "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue
                raise APIRequestError(f"{operation_name} failed: {e}") from e

            status_code = response.status_code

            if status_code == 429:
                if not last_attempt:
                    logger.warning(
                        f"{operation_name} rate limited, retrying in "
                        f"{delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue
                raise RateLimitError(
                    f"Rate limit exceeded for {operation_name} "
                    f"after {self.max_retries} attempts",
                    status_code=status_code,
                    payload=_decode_payload(response),
                )

            if status_code >= 500 and idempotent and not last_attempt:
                logger.warning(
                    f"{operation_name} server error ({status_code}), "
                    f"retrying in {delay:.1f}s"
                )
                time.sleep(delay)
                delay = min(delay * 2, self.max_retry_delay)
                continue

            if status_code >= 400:
                payload = _decode_payload(response)
                logger.error(f"{operation_name} failed with status {status_code}")
                raise APIRequestError(
                    f"{operation_name} failed with status {status_code}",
                    status_code=status_code,
                    payload=payload,
                )

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise APIRequestError(
                    f"{operation_name} returned invalid JSON",
                    status_code=status_code,
                    payload=response.text,
                ) from e

        # Unreachable with max_retries >= 1
        raise APIRequestError(f"{operation_name} failed after all retries")


class ContactSource(ABC):
    """A source CRM that can be paged through for contacts."""

    name: str = "source"

    @abstractmethod
    def fetch_all_contacts(
        self, search_filter: dict[str, Any] | None = None
    ) -> list[Contact]:
        """Fetch every contact matching the optional provider filter."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"


class SubscriberDestination(ABC):
    """An email-marketing system holding subscriber groups."""

    name: str = "destination"

    @abstractmethod
    def list_groups(self) -> list[DestinationGroup]:
        """List every group in the destination."""
        pass

    @abstractmethod
    def create_group(self, name: str) -> DestinationGroup:
        """Create a group and return it with its new id."""
        pass

    @abstractmethod
    def upsert_subscriber(
        self, email: str, fields: dict[str, Any], group_ids: list[str]
    ) -> dict[str, Any]:
        """Create or update a subscriber and add it to the given groups."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"
