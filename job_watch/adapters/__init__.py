"""Job board source adapters.

One adapter per supported source type, all implementing
``fetch_postings(source_id) -> list[NormalizedPosting]``:
- Greenhouse: greenhouse.GreenhouseAdapter
- Lever: lever.LeverAdapter
- Ashby: ashby.AshbyAdapter

Use the lookup function to instantiate adapters:
    from job_watch.adapters import get_adapter
    adapter = get_adapter(watch.source_type, advanced_config)
    postings = adapter.fetch_postings(watch.source_id)

Every failure to fetch raises a SourceFetchError subclass.
"""

from .ashby import AshbyAdapter
from .base import BaseAdapter
from .detection import SourceDetection, detect_in_text, detect_sources
from .exceptions import (
    SourceConfigurationError,
    SourceFetchError,
    SourceHTTPError,
    SourceResponseError,
    SourceTimeoutError,
)
from .factory import ADAPTERS, fetch_postings, get_adapter
from .greenhouse import GreenhouseAdapter
from .lever import LeverAdapter
from .validation import SourceValidationResult, validate_source

__all__ = [
    # Base and lookup
    "BaseAdapter",
    "ADAPTERS",
    "get_adapter",
    "fetch_postings",
    # Adapters
    "GreenhouseAdapter",
    "LeverAdapter",
    "AshbyAdapter",
    # Watch setup helpers
    "validate_source",
    "SourceValidationResult",
    "detect_sources",
    "detect_in_text",
    "SourceDetection",
    # Exceptions
    "SourceFetchError",
    "SourceHTTPError",
    "SourceTimeoutError",
    "SourceResponseError",
    "SourceConfigurationError",
]
