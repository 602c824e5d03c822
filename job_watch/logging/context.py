"""Scoped logging fields.

Fields bound here (``run_id``, ``watch_id``, ``company``, ``source_type``)
are copied onto every record emitted inside the scope by ``ContextualFilter``.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator

_fields: ContextVar[Dict[str, Any]] = ContextVar("job_watch_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    return dict(_fields.get())


def clear_log_context() -> None:
    _fields.set({})


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind fields for the duration of a with-block; scopes nest.

    Example:
        >>> with log_context(run_id=run_id, watch_id=watch.id):
        ...     logger.info("Checking watch", extra={"event": "watch.check.started"})
    """
    token = _fields.set({**_fields.get(), **fields})
    try:
        yield get_log_context()
    finally:
        _fields.reset(token)
