"""Exceptions raised by job board source adapters."""

from typing import Optional


class SourceFetchError(Exception):
    """Base exception for all source fetch failures.

    The pipeline catches this per watch: the failure is recorded in the run
    summary and the remaining watches are still checked.
    """

    pass


class SourceHTTPError(SourceFetchError):
    """Request failed with a non-2xx status, or never got a response.

    A status_code of 0 means a transport failure (DNS, connection refused, ...).
    """

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class SourceTimeoutError(SourceFetchError):
    """Request did not complete within the adapter timeout."""

    def __init__(self, message: str, url: str, timeout: Optional[float] = None) -> None:
        super().__init__(message)
        self.url = url
        self.timeout = timeout


class SourceResponseError(SourceFetchError):
    """Response body could not be parsed as JSON."""

    pass


class SourceConfigurationError(SourceFetchError):
    """Unsupported source type or invalid adapter settings."""

    pass
