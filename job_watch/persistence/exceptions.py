"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError, which the check
pipeline lets propagate: a store that cannot be written is a failed run.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Database URL invalid, file inaccessible, or init_database() not called."""

    pass


class RecordNotFoundError(PersistenceError):
    """A watch or alert expected to exist was not found.

    Optional lookups (get, get_by_key) return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Constraint violation, e.g. a second alert for the same (watch, external id)."""

    pass
