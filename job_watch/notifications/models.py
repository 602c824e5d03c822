"""Data models and exceptions for the notification service."""

from dataclasses import dataclass, field
from typing import List, Optional

from job_watch.domain.models import NotificationChannel


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class NotificationDispatchError(NotificationError):
    """A channel could not deliver: not configured, transport error, or non-2xx response."""

    def __init__(self, message: str, channel: NotificationChannel, status_code: Optional[int] = None):
        super().__init__(message)
        self.channel = channel
        self.status_code = status_code


@dataclass
class AlertMessage:
    """What a notification says about one alert."""

    company: str
    title: str
    url: str
    location: str
    source_type: str
    matched_keywords: List[str] = field(default_factory=list)


@dataclass
class NotificationResult:
    """Outcome of one dispatch attempt. There is no partial success.

    Attributes:
        channel: Channel the attempt went through
        status: "sent" or "failed"
        error: Failure reason when status is "failed"
    """

    channel: NotificationChannel
    status: str
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.status == "sent"
