"""Notification delivery for job alerts.

Primary channel: webhook message per alert.
Secondary channel: one email digest for every alert the webhook could not deliver.
"""

from .clients import EmailDigestClient, WebhookClient
from .models import (
    AlertMessage,
    NotificationDispatchError,
    NotificationError,
    NotificationResult,
    NotificationTemplateError,
)
from .service import NotificationService
from .templates import TemplateRenderer

__all__ = [
    "NotificationService",
    "WebhookClient",
    "EmailDigestClient",
    "TemplateRenderer",
    "AlertMessage",
    "NotificationResult",
    "NotificationError",
    "NotificationDispatchError",
    "NotificationTemplateError",
]
