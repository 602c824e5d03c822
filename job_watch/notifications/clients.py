"""HTTP clients for the two notification channels.

Both clients either deliver or raise NotificationDispatchError; neither
retries. The check pipeline owns the fallback policy.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from job_watch.domain.models import NotificationChannel

from .models import NotificationDispatchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def _post_json(
    channel: NotificationChannel,
    url: str,
    payload: Dict[str, Any],
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
) -> None:
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.exceptions.Timeout as e:
        raise NotificationDispatchError(
            f"{channel.value} delivery timed out after {timeout}s", channel
        ) from e
    except requests.exceptions.RequestException as e:
        raise NotificationDispatchError(f"{channel.value} delivery failed: {e}", channel) from e

    if not response.ok:
        raise NotificationDispatchError(
            f"{channel.value} delivery failed ({response.status_code})",
            channel,
            status_code=response.status_code,
        )

    logger.debug(
        f"{channel.value} delivery accepted",
        extra={"event": "notification.http.accepted", "status_code": response.status_code},
    )


class WebhookClient:
    """Primary channel: posts ``{"text": ...}`` to an incoming-webhook URL."""

    channel = NotificationChannel.WEBHOOK

    def __init__(self, webhook_url: Optional[str], timeout: float = DEFAULT_TIMEOUT):
        self.webhook_url = webhook_url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    def send(self, text: str) -> None:
        """Deliver one message.

        Raises:
            NotificationDispatchError: If no webhook is configured or delivery fails
        """
        if not self.webhook_url:
            raise NotificationDispatchError("Webhook URL is not configured", self.channel)

        _post_json(self.channel, self.webhook_url, {"text": text}, self.timeout)


class EmailDigestClient:
    """Secondary channel: sends one plain-text email through a transactional email API."""

    channel = NotificationChannel.EMAIL

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str,
        sender: str,
        recipients: List[str],
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.sender = sender
        self.recipients = list(recipients)
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.recipients)

    def send(self, subject: str, text: str) -> None:
        """Deliver the digest to every recipient in one request.

        Raises:
            NotificationDispatchError: If the API key or recipients are missing or delivery fails
        """
        if not self.configured:
            raise NotificationDispatchError(
                "Email API key or recipients are not configured", self.channel
            )

        _post_json(
            self.channel,
            self.api_url,
            {
                "from": self.sender,
                "to": self.recipients,
                "subject": subject,
                "text": text,
            },
            self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
