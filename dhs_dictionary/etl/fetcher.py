"""
Component: etl/fetcher.py
Purpose: Retrieves JSON record batches from the DHS Program REST API
         (http://api.dhsprogram.com/rest/dhs), one page per request, retrying
         failed pages with a fixed delay.
Outputs: RecordBatch objects (total record count + list of flat record dicts).
Integration: Used by every initializer stage that reads remote data.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from dhs_dictionary.exceptions import FetchError

logger = logging.getLogger(__name__)

# Endpoints relative to the API base URL.
ENDPOINT_COUNTRIES = 'countries'
ENDPOINT_SURVEY_CHARACTERISTICS = 'surveycharacteristics'
ENDPOINT_TAGS = 'tags'
ENDPOINT_INDICATORS = 'indicators'
ENDPOINT_SURVEYS = 'surveys'
ENDPOINT_DATA = 'data'

DATA_FIELD = 'Data'


@dataclass
class RecordBatch:
    """One page of records returned by the API."""
    total: int
    records: List[Dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)


class DHSFetcher:
    """Blocking, retrying page fetcher for the DHS REST API."""

    DEFAULT_BASE_URL = 'http://api.dhsprogram.com/rest/dhs'
    DEFAULT_PAGE_SIZE = 1000
    MAX_RETRIES = 10
    RETRY_DELAY = 10.0
    DEFAULT_TIMEOUT = 60

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.base_url = base_url.rstrip('/')
        self.page_size = int(page_size)
        self.max_retries = int(max_retries)
        self.retry_delay = float(retry_delay)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.sleep = sleep

    @classmethod
    def from_config(cls, api_config: Dict[str, Any], **kwargs) -> "DHSFetcher":
        return cls(
            base_url=api_config.get('base_url', cls.DEFAULT_BASE_URL),
            page_size=api_config.get('page_size', cls.DEFAULT_PAGE_SIZE),
            max_retries=api_config.get('max_retries', cls.MAX_RETRIES),
            retry_delay=api_config.get('retry_delay', cls.RETRY_DELAY),
            timeout=api_config.get('timeout', cls.DEFAULT_TIMEOUT),
            **kwargs,
        )

    def url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _request(self, url: str, params: Dict[str, Any]) -> RecordBatch:
        """Single attempt; raises on transport, status, decoding or shape errors."""
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()

        if not isinstance(payload, dict) or not isinstance(payload.get(DATA_FIELD), list):
            raise ValueError(f"Response has no '{DATA_FIELD}' array")

        records = payload[DATA_FIELD]
        total = payload.get('RecordCount', payload.get('RecordsReturned', len(records)))
        try:
            total = int(total)
        except (TypeError, ValueError):
            total = len(records)
        return RecordBatch(total=total, records=records)

    def _log_retry(self, url: str, params: Dict[str, Any]) -> Callable[[RetryCallState], None]:
        def log(retry_state: RetryCallState) -> None:
            logger.warning(
                f"Attempt {retry_state.attempt_number}/{self.max_retries} for {url} {params} failed: "
                f"{retry_state.outcome.exception()}. Retrying in {self.retry_delay:.1f}s..."
            )
        return log

    def fetch(self, endpoint: str, **params) -> RecordBatch:
        """Fetch one batch, retrying up to ``max_retries`` times.

        Raises:
            FetchError: If every attempt failed
        """
        url = self.url(endpoint)
        query = {'f': 'json', **params}
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception_type((requests.RequestException, ValueError)),
            sleep=self.sleep,
            before_sleep=self._log_retry(url, params),
        )

        try:
            return retrying(self._request, url, query)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(f"All {self.max_retries} attempts for {url} {params} failed. Last error: {last_error}")
            raise FetchError(
                f"Unable to fetch {url} after {self.max_retries} attempts: {last_error}",
                url=url,
                attempts=self.max_retries,
            ) from last_error

    def fetch_page(self, endpoint: str, page: int, page_size: Optional[int] = None,
                   **params) -> RecordBatch:
        return self.fetch(endpoint, perpage=page_size or self.page_size, page=page, **params)

    def fetch_all(self, endpoint: str, **params) -> RecordBatch:
        """Non-paginated fetch, used for the short lookup lists."""
        return self.fetch(endpoint, **params)

    def iter_pages(self, endpoint: str, page_size: Optional[int] = None,
                   **params) -> Iterator[RecordBatch]:
        """Yield pages 1, 2, ... until a page comes back empty."""
        page = 1
        while True:
            batch = self.fetch_page(endpoint, page, page_size, **params)
            if not batch.records:
                logger.debug(f"{endpoint} {params}: no records on page {page}, done")
                return
            yield batch
            page += 1

    def iter_records(self, endpoint: str, page_size: Optional[int] = None,
                     **params) -> Iterator[Dict[str, Any]]:
        for batch in self.iter_pages(endpoint, page_size, **params):
            yield from batch.records

    def close(self):
        self.session.close()
