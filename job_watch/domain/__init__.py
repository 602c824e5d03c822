"""Domain models for Job Watch."""

from .models import (
    Alert,
    AlertStatus,
    NormalizedPosting,
    NotificationChannel,
    SourceType,
    UserDecision,
    Watch,
)

__all__ = [
    "Alert",
    "AlertStatus",
    "NormalizedPosting",
    "NotificationChannel",
    "SourceType",
    "UserDecision",
    "Watch",
]
