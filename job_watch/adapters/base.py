"""Base adapter class with shared functionality for all source adapters.

Adapters turn one job board's public API response into NormalizedPosting
objects. Transport problems raise the SourceFetchError family; individual
entries that lack the minimum fields are dropped without failing the batch.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from job_watch.domain.models import NormalizedPosting
from job_watch.logging import get_logger

from .exceptions import (
    SourceConfigurationError,
    SourceHTTPError,
    SourceResponseError,
    SourceTimeoutError,
)

logger = get_logger(__name__, component="adapter")

DEFAULT_USER_AGENT = "JobWatch/1.0"


class MalformedEntry(Exception):
    """Raised inside _normalize for entries missing required fields. Never escapes."""


class BaseAdapter(ABC):
    """Base class for all source adapters.

    Attributes:
        timeout: HTTP request timeout in seconds (fractions allowed)
        user_agent: User-Agent header for HTTP requests
    """

    SOURCE_TYPE: str = ""

    def __init__(
        self,
        timeout: float = 30,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """Initialize adapter with configuration.

        Raises:
            SourceConfigurationError: If timeout is outside (0, 300] or user_agent is empty
        """
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or not 0 < timeout <= 300:
            raise SourceConfigurationError(
                f"Timeout must be greater than 0 and at most 300 seconds, got: {timeout}"
            )
        if not user_agent or not user_agent.strip():
            raise SourceConfigurationError("user_agent cannot be empty")

        self.timeout = timeout
        self.user_agent = user_agent.strip()

        self._session = requests.Session()
        self._session.headers.update(
            {"User-Agent": self.user_agent, "Accept": "application/json"}
        )

    @abstractmethod
    def fetch_postings(self, source_id: str) -> list[NormalizedPosting]:
        """Fetch the current postings for one board.

        Args:
            source_id: Provider-specific board/org slug

        Returns:
            Postings in provider order; malformed entries are omitted

        Raises:
            SourceFetchError: On transport failure, non-2xx status, timeout or non-JSON body
        """

    def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        """GET a URL and decode its JSON body.

        Raises:
            SourceHTTPError: On non-2xx status or transport failure (status 0)
            SourceTimeoutError: When the request exceeds self.timeout
            SourceResponseError: When the body is not JSON
        """
        logger.debug(
            f"HTTP GET {url}",
            extra={
                "event": "adapter.fetch.request",
                "source_type": self.SOURCE_TYPE,
                "url": url,
                "timeout": self.timeout,
            },
        )

        try:
            response = self._session.request(
                method="GET",
                url=url,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={
                    "event": "adapter.fetch.timeout",
                    "source_type": self.SOURCE_TYPE,
                    "url": url,
                    "timeout": self.timeout,
                },
            )
            raise SourceTimeoutError(
                f"{self._label} fetch timed out after {self.timeout}s",
                url=url,
                timeout=self.timeout,
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={
                    "event": "adapter.fetch.error",
                    "source_type": self.SOURCE_TYPE,
                    "error_type": type(e).__name__,
                    "url": url,
                },
            )
            raise SourceHTTPError(
                f"{self._label} fetch failed ({e})",
                status_code=0,
                url=url,
            ) from e

        if not 200 <= response.status_code < 300:
            logger.warning(
                f"HTTP {response.status_code} from {url}",
                extra={
                    "event": "adapter.fetch.error",
                    "source_type": self.SOURCE_TYPE,
                    "status_code": response.status_code,
                    "url": url,
                },
            )
            raise SourceHTTPError(
                f"{self._label} fetch failed ({response.status_code})",
                status_code=response.status_code,
                url=url,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response from {url}",
                extra={
                    "event": "adapter.fetch.error",
                    "source_type": self.SOURCE_TYPE,
                    "error_type": "JSONDecodeError",
                    "url": url,
                },
            )
            raise SourceResponseError(
                f"{self._label} returned a non-JSON response"
            ) from e

        logger.debug(
            "HTTP request succeeded",
            extra={
                "event": "adapter.fetch.succeeded",
                "source_type": self.SOURCE_TYPE,
                "status_code": response.status_code,
                "url": url,
            },
        )
        return data

    @property
    def _label(self) -> str:
        return self.SOURCE_TYPE.capitalize() or type(self).__name__

    @staticmethod
    def _encode(source_id: str) -> str:
        """Encode a source id as a single URL path segment."""
        return quote(source_id, safe="")

    @staticmethod
    def _text(value: Any) -> str:
        """Stripped string for str values, empty string for anything else."""
        return value.strip() if isinstance(value, str) else ""

    def _normalize_all(
        self, entries: Iterable[Any], source_id: str
    ) -> list[NormalizedPosting]:
        """Normalize raw entries, silently dropping malformed ones."""
        postings = []
        dropped = 0

        for entry in entries:
            if not isinstance(entry, dict):
                dropped += 1
                continue
            try:
                postings.append(self._normalize(entry, source_id))
            except (MalformedEntry, ValidationError) as e:
                dropped += 1
                logger.debug(
                    "Dropping malformed posting entry",
                    extra={
                        "event": "adapter.entry.dropped",
                        "source_type": self.SOURCE_TYPE,
                        "source_id": source_id,
                        "reason": str(e).splitlines()[0] if str(e) else type(e).__name__,
                    },
                )

        logger.info(
            f"Fetched {len(postings)} postings from {self._label}",
            extra={
                "event": "adapter.fetch.completed",
                "source_type": self.SOURCE_TYPE,
                "source_id": source_id,
                "count": len(postings),
                "dropped": dropped,
            },
        )
        return postings

    @abstractmethod
    def _normalize(self, entry: Dict[str, Any], source_id: str) -> NormalizedPosting:
        """Map one provider entry to a NormalizedPosting, raising MalformedEntry if unusable."""
