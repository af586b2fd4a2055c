"""Client for the Ticketmaster Discovery API event search."""
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from processor.dates import format_iso_no_ms
from processor.errors import TicketmasterAPIError
from processor.models import FetchWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How to wait before retrying a failed attempt."""
    honor_retry_after: bool
    delays: tuple = ()
    default_wait: float = 5.0

    def wait_seconds(self, attempt: int, retry_after: Optional[str]) -> float:
        """
        Compute the wait before the next attempt.

        Args:
            attempt: Zero-based index of the attempt that just failed
            retry_after: Raw Retry-After header value, if any

        Returns:
            Seconds to sleep
        """
        if self.honor_retry_after:
            try:
                wait = float(retry_after)
            except (TypeError, ValueError):
                return self.default_wait
            if not math.isfinite(wait):
                return self.default_wait
            return max(0.0, wait)
        return self.delays[min(attempt, len(self.delays) - 1)]


RATE_LIMITED = RetryPolicy(honor_retry_after=True, default_wait=5.0)
TRANSIENT = RetryPolicy(honor_retry_after=False, delays=(2, 5, 10))

# Status codes not listed here (and not 5xx) fail fast.
RETRY_POLICIES = {
    429: RATE_LIMITED,
    408: TRANSIENT,
    409: TRANSIENT,
}


def retry_policy_for(status_code: int) -> Optional[RetryPolicy]:
    """Look up the retry policy for an HTTP status, None if not retryable."""
    if status_code in RETRY_POLICIES:
        return RETRY_POLICIES[status_code]
    if 500 <= status_code < 600:
        return TRANSIENT
    return None


def clamp_page_size(page_size: int) -> int:
    """Clamp a page size into the range the provider accepts (20-200)."""
    return min(max(int(page_size), TicketmasterClient.MIN_PAGE_SIZE),
               TicketmasterClient.MAX_PAGE_SIZE)


class TicketmasterClient:
    """Fetches event listings per city from the Ticketmaster Discovery API."""

    BASE_URL = "https://app.ticketmaster.com/discovery/v2/events.json"
    MAX_ATTEMPTS = 3
    MAX_WAIT_SECONDS = 60
    MAX_PAGES = 10
    PAGE_DELAY_SECONDS = 0.5
    MIN_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 200
    BODY_PREVIEW_CHARS = 200

    def __init__(
        self,
        api_key: str,
        country_code: str = 'ZA',
        timeout: int = 30,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the Ticketmaster client.

        Args:
            api_key: Ticketmaster consumer key
            country_code: ISO country filter applied to every search
            timeout: HTTP request timeout in seconds (default: 30)
            sleep: Function used for backoff and politeness delays
        """
        self.api_key = api_key
        self.country_code = country_code
        self.timeout = timeout
        self.sleep = sleep

    def fetch_locality_events(
        self,
        locality: str,
        window: FetchWindow,
        page_size: int = 100
    ) -> List[Dict[str, Any]]:
        """
        Fetch every event page for a city.

        Stops once the provider reports no more pages or MAX_PAGES pages
        have been read.

        Args:
            locality: City name to search
            window: Start/end datetime window
            page_size: Events per page (clamped to 20-200)

        Returns:
            List of raw event records

        Raises:
            TicketmasterAPIError: If any page fails terminally
        """
        page_size = clamp_page_size(page_size)
        records = []
        page_index = 0
        total_pages = 1

        while page_index < total_pages:
            response = self.fetch_page(locality, window, page_size, page_index)
            records.extend(response.get('_embedded', {}).get('events', []))

            total_pages = response.get('page', {}).get('totalPages', 1) or 1
            page_index += 1

            if page_index >= self.MAX_PAGES:
                if page_index < total_pages:
                    logger.warning(
                        f"Reached page cap ({self.MAX_PAGES}) for {locality}. "
                        f"Stopping pagination."
                    )
                break

            if page_index < total_pages:
                self.sleep(self.PAGE_DELAY_SECONDS)

        logger.info(
            f"Fetched {len(records)} raw events for {locality} "
            f"across {page_index} page(s)"
        )
        return records

    def fetch_page(
        self,
        locality: str,
        window: FetchWindow,
        page_size: int,
        page_index: int
    ) -> Dict[str, Any]:
        """
        Fetch a single search page with retry logic.

        Args:
            locality: City name to search
            window: Start/end datetime window
            page_size: Events per page
            page_index: Zero-based page number

        Returns:
            Decoded JSON response

        Raises:
            TicketmasterAPIError: On a non-retryable status or once all
                attempts are used up
        """
        params = {
            'apikey': self.api_key,
            'countryCode': self.country_code,
            'city': locality,
            'sort': 'date,asc',
            'size': str(page_size),
            'page': str(page_index),
            'startDateTime': format_iso_no_ms(window.start),
            'endDateTime': format_iso_no_ms(window.end)
        }

        last_error = None

        for attempt in range(self.MAX_ATTEMPTS):
            retry_after = None
            try:
                response = requests.get(
                    self.BASE_URL,
                    params=params,
                    timeout=self.timeout
                )
                if response.ok:
                    return response.json()
            except requests.RequestException as e:
                # Includes resets mid-body and truncated JSON on a 2xx.
                policy = TRANSIENT
                last_error = TicketmasterAPIError(
                    f"Network error fetching {locality} page {page_index}: {e}"
                )
            else:
                body = response.text[:self.BODY_PREVIEW_CHARS]
                policy = retry_policy_for(response.status_code)
                if policy is None:
                    logger.error(
                        f"Ticketmaster returned {response.status_code} for "
                        f"{locality} page {page_index}: {body}"
                    )
                    raise TicketmasterAPIError(
                        f"TM API {response.status_code}: {body}",
                        status_code=response.status_code,
                        body=body
                    )

                retry_after = response.headers.get('Retry-After')
                last_error = TicketmasterAPIError(
                    f"TM API {response.status_code}: {body}",
                    status_code=response.status_code,
                    body=body
                )

            if attempt < self.MAX_ATTEMPTS - 1:
                delay = min(
                    policy.wait_seconds(attempt, retry_after),
                    self.MAX_WAIT_SECONDS
                )
                if policy.honor_retry_after:
                    logger.warning(
                        f"Rate-limited by Ticketmaster. Waiting {delay}s..."
                    )
                else:
                    logger.warning(
                        f"Fetch attempt {attempt + 1}/{self.MAX_ATTEMPTS} failed "
                        f"for {locality} page {page_index}: {last_error}. "
                        f"Retrying in {delay} seconds..."
                    )
                self.sleep(delay)

        logger.error(
            f"All {self.MAX_ATTEMPTS} attempts failed for {locality} "
            f"page {page_index}. Last error: {last_error}"
        )
        raise last_error
