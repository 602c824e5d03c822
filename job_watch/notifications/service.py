"""Notification service for job alerts.

Turns every dispatch attempt into a NotificationResult so the check pipeline
can branch on success without handling channel exceptions itself.
"""

import logging
from typing import Optional, Sequence

from job_watch.config.environment import EnvironmentConfig
from job_watch.config.models import NotificationsConfig
from job_watch.domain.models import NotificationChannel
from job_watch.logging import get_logger

from .clients import EmailDigestClient, WebhookClient
from .models import (
    AlertMessage,
    NotificationDispatchError,
    NotificationResult,
    NotificationTemplateError,
)
from .templates import TemplateRenderer

logger = get_logger(__name__, component="notification")


class NotificationService:
    """Sends per-alert webhook messages and fallback email digests.

    Never raises for delivery problems: missing configuration, transport
    errors, non-2xx responses and template failures all come back as a
    failed NotificationResult.
    """

    def __init__(
        self,
        webhook_client: WebhookClient,
        email_client: EmailDigestClient,
        template_renderer: Optional[TemplateRenderer] = None,
        subject_prefix: str = "[Job Watch]",
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.webhook_client = webhook_client
        self.email_client = email_client
        self.template_renderer = template_renderer or TemplateRenderer()
        self.subject_prefix = subject_prefix
        self.logger = logger_instance or logger

    @classmethod
    def from_config(
        cls,
        env_config: EnvironmentConfig,
        notifications_config: Optional[NotificationsConfig] = None,
    ) -> "NotificationService":
        notifications_config = notifications_config or NotificationsConfig()
        return cls(
            webhook_client=WebhookClient(
                env_config.webhook_url, timeout=notifications_config.webhook_timeout
            ),
            email_client=EmailDigestClient(
                api_key=env_config.email_api_key,
                api_url=notifications_config.email_api_url,
                sender=env_config.alert_email_from,
                recipients=env_config.recipients,
                timeout=notifications_config.webhook_timeout,
            ),
            subject_prefix=notifications_config.email_subject_prefix,
        )

    def send_alert(self, message: AlertMessage) -> NotificationResult:
        """Send one alert through the primary (webhook) channel."""
        channel = NotificationChannel.WEBHOOK
        try:
            text = self.template_renderer.render_alert(message)
            self.webhook_client.send(text)
        except (NotificationDispatchError, NotificationTemplateError) as e:
            self.logger.warning(
                f"Webhook delivery failed for {message.company} - {message.title}: {e}",
                extra={
                    "event": "notification.send.failure",
                    "channel": channel.value,
                    "error_type": type(e).__name__,
                },
            )
            return NotificationResult(channel=channel, status="failed", error=str(e))

        self.logger.info(
            f"Webhook alert sent for {message.company} - {message.title}",
            extra={"event": "notification.sent", "channel": channel.value},
        )
        return NotificationResult(channel=channel, status="sent")

    def send_digest(self, messages: Sequence[AlertMessage]) -> NotificationResult:
        """Send all queued alerts as one email. An empty batch counts as sent."""
        channel = NotificationChannel.EMAIL
        if not messages:
            return NotificationResult(channel=channel, status="sent")

        try:
            subject, body = self.template_renderer.render_digest(messages, self.subject_prefix)
            self.email_client.send(subject, body)
        except (NotificationDispatchError, NotificationTemplateError) as e:
            self.logger.error(
                f"Email digest of {len(messages)} alert(s) failed: {e}",
                extra={
                    "event": "notification.digest.failure",
                    "channel": channel.value,
                    "alert_count": len(messages),
                    "error_type": type(e).__name__,
                },
            )
            return NotificationResult(channel=channel, status="failed", error=str(e))

        self.logger.info(
            f"Email digest sent with {len(messages)} alert(s)",
            extra={
                "event": "notification.digest.sent",
                "channel": channel.value,
                "alert_count": len(messages),
            },
        )
        return NotificationResult(channel=channel, status="sent")
