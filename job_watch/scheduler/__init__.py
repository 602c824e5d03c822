"""Periodic execution of check cycles."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
