"""Persistence layer for watches and alerts (SQLAlchemy, SQLite by default).

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None

    # Repository classes
    - WatchRepository: watch CRUD and last-checked bookkeeping
    - AlertRepository: alert reconciliation, notification state and decisions

Example usage:
    >>> from job_watch.persistence import init_database, get_session, WatchRepository
    >>> init_database("sqlite:///./data/job_watch.db")
    >>> with get_session() as session:
    ...     watches = WatchRepository(session).list_active()
"""

from .database import close_database, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import AlertRepository, WatchRepository

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    # Repositories
    "WatchRepository",
    "AlertRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
