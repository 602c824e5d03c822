"""One-shot source checks used when adding or editing a watch."""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from job_watch.config.models import AdvancedConfig
from job_watch.domain.models import SourceType
from job_watch.logging import get_logger

from .exceptions import SourceFetchError
from .factory import fetch_postings

logger = get_logger(__name__, component="adapter")

SAMPLE_TITLE_COUNT = 5


@dataclass
class SourceValidationResult:
    """Outcome of a single trial fetch."""

    valid: bool
    count: int = 0
    sample_titles: List[str] = field(default_factory=list)
    error: Optional[str] = None


def validate_source(
    source_type: Union[SourceType, str],
    source_id: str,
    advanced_config: Optional[AdvancedConfig] = None,
    timeout: Optional[float] = None,
) -> SourceValidationResult:
    """Fetch a board once and report whether it works.

    Fetch failures are reported in the result, never raised.
    """
    source_id = (source_id or "").strip()
    if not source_id:
        return SourceValidationResult(valid=False, error="source_id is required")

    try:
        postings = fetch_postings(source_type, source_id, advanced_config, timeout=timeout)
    except SourceFetchError as e:
        logger.info(
            "Source validation failed",
            extra={
                "event": "source.validate.failed",
                "source_type": str(getattr(source_type, "value", source_type)),
                "source_id": source_id,
                "error": str(e),
            },
        )
        return SourceValidationResult(valid=False, error=str(e))

    return SourceValidationResult(
        valid=True,
        count=len(postings),
        sample_titles=[p.title for p in postings[:SAMPLE_TITLE_COUNT]],
    )
