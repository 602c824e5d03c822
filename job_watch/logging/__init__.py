"""Structured logging for Job Watch.

Every module obtains its logger through ``get_logger(__name__, component=...)``
so records carry a ``component`` field next to the ``event`` passed in
``extra``. Run and watch scoped fields come from ``log_context``.
"""

import logging
from typing import Optional

from .config import configure_logging
from .context import clear_log_context, get_log_context, log_context


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its component with per-call extra fields."""

    def process(self, msg, kwargs):
        # Per-call extra wins over the adapter's defaults
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Get a logger, tagged with a component when one is given.

    Example:
        >>> logger = get_logger(__name__, component="pipeline")
        >>> logger.info("Check started", extra={"event": "check.run.started"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger


__all__ = [
    "ComponentLoggerAdapter",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_log_context",
    "clear_log_context",
]
