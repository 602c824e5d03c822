"""Adapter lookup by source type."""

from typing import Optional, Union

from job_watch.config.models import AdvancedConfig
from job_watch.domain.models import NormalizedPosting, SourceType
from job_watch.logging import get_logger

from .ashby import AshbyAdapter
from .base import BaseAdapter
from .exceptions import SourceConfigurationError
from .greenhouse import GreenhouseAdapter
from .lever import LeverAdapter

logger = get_logger(__name__, component="adapter")

ADAPTERS: dict[str, type[BaseAdapter]] = {
    SourceType.GREENHOUSE.value: GreenhouseAdapter,
    SourceType.LEVER.value: LeverAdapter,
    SourceType.ASHBY.value: AshbyAdapter,
}


def get_adapter(
    source_type: Union[SourceType, str],
    advanced_config: Optional[AdvancedConfig] = None,
    timeout: Optional[float] = None,
) -> BaseAdapter:
    """Instantiate the adapter for a source type.

    Args:
        source_type: One of greenhouse, lever, ashby
        advanced_config: Timeout and user-agent settings (defaults if None)
        timeout: Per-request timeout in seconds, overriding advanced_config

    Raises:
        SourceConfigurationError: If the source type is unsupported or settings are invalid

    Example:
        >>> adapter = get_adapter("greenhouse", AdvancedConfig())
        >>> postings = adapter.fetch_postings("examplecorp")
    """
    advanced_config = advanced_config or AdvancedConfig()
    key = source_type.value if isinstance(source_type, SourceType) else str(source_type).lower()

    adapter_class = ADAPTERS.get(key)
    if adapter_class is None:
        supported = ", ".join(sorted(ADAPTERS))
        raise SourceConfigurationError(
            f"Unsupported source type: {source_type}. Supported types: {supported}"
        )

    logger.debug(
        "Creating adapter instance",
        extra={
            "event": "adapter.created",
            "source_type": key,
            "adapter_class": adapter_class.__name__,
        },
    )

    return adapter_class(
        timeout=timeout if timeout is not None else advanced_config.http_request_timeout,
        user_agent=advanced_config.user_agent,
    )


def fetch_postings(
    source_type: Union[SourceType, str],
    source_id: str,
    advanced_config: Optional[AdvancedConfig] = None,
    timeout: Optional[float] = None,
) -> list[NormalizedPosting]:
    """Fetch postings for one board without keeping the adapter around."""
    return get_adapter(source_type, advanced_config, timeout=timeout).fetch_postings(source_id)
