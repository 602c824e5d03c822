"""Unit tests for notification templates, clients and service."""

from unittest.mock import Mock, patch

import pytest
import requests

from job_watch.config.environment import EnvironmentConfig
from job_watch.config.models import NotificationsConfig
from job_watch.domain.models import NotificationChannel
from job_watch.notifications import (
    AlertMessage,
    EmailDigestClient,
    NotificationDispatchError,
    NotificationService,
    NotificationTemplateError,
    TemplateRenderer,
    WebhookClient,
)

POST = "job_watch.notifications.clients.requests.post"


@pytest.fixture
def message():
    return AlertMessage(
        company="Acme",
        title="Product Manager",
        url="https://boards.greenhouse.io/acme/jobs/1",
        location="Remote - US",
        source_type="greenhouse",
        matched_keywords=["title:product", "location:remote"],
    )


@pytest.fixture
def second_message():
    return AlertMessage(
        company="Beta",
        title="Designer",
        url="https://jobs.lever.co/beta/2",
        location="",
        source_type="lever",
    )


def ok_response(status_code=200):
    return Mock(ok=200 <= status_code < 300, status_code=status_code)


class TestTemplateRenderer:
    def test_render_alert(self, message):
        text = TemplateRenderer().render_alert(message)

        assert text.splitlines()[0] == "*New role match* at *Acme*"
        assert "• Title: Product Manager" in text
        assert "• Location: Remote - US" in text
        assert "• Source: greenhouse" in text
        assert "• Matched: title:product, location:remote" in text
        assert text.endswith("• Link: https://boards.greenhouse.io/acme/jobs/1")

    def test_render_alert_without_location_or_keywords(self, second_message):
        text = TemplateRenderer().render_alert(second_message)

        assert "• Location: N/A" in text
        assert "• Matched: none" in text

    def test_render_digest(self, message, second_message):
        subject, body = TemplateRenderer().render_digest([message, second_message], "[Job Watch]")

        assert subject == "[Job Watch] 2 new matched role(s)"
        assert body.startswith("Job alert fallback digest (webhook delivery failed):")
        assert "1. Acme - Product Manager" in body
        assert "2. Beta - Designer" in body
        assert "URL: https://jobs.lever.co/beta/2" in body

    def test_text_is_not_html_escaped(self):
        message = AlertMessage(
            company="R&D <Labs>", title="PM", url="https://x", location="", source_type="ashby"
        )
        assert "*R&D <Labs>*" in TemplateRenderer().render_alert(message)

    def test_missing_template_raises(self, message):
        renderer = TemplateRenderer(alert_template="missing.txt.j2")
        with pytest.raises(NotificationTemplateError):
            renderer.render_alert(message)


class TestWebhookClient:
    def test_posts_text_payload(self):
        client = WebhookClient("https://hooks.example.test/abc", timeout=3)

        with patch(POST, return_value=ok_response()) as mock_post:
            client.send("hello")

        mock_post.assert_called_once_with(
            "https://hooks.example.test/abc", json={"text": "hello"}, headers=None, timeout=3
        )

    def test_unconfigured_raises(self):
        client = WebhookClient(None)
        assert client.configured is False
        with pytest.raises(NotificationDispatchError, match="not configured"):
            client.send("hello")

    def test_non_2xx_raises_with_status(self):
        with patch(POST, return_value=ok_response(500)):
            with pytest.raises(NotificationDispatchError) as exc_info:
                WebhookClient("https://hooks.example.test").send("hello")

        assert exc_info.value.status_code == 500
        assert exc_info.value.channel == NotificationChannel.WEBHOOK

    def test_timeout_raises(self):
        with patch(POST, side_effect=requests.exceptions.Timeout()):
            with pytest.raises(NotificationDispatchError, match="timed out"):
                WebhookClient("https://hooks.example.test").send("hello")


class TestEmailDigestClient:
    def test_posts_single_request_to_all_recipients(self):
        client = EmailDigestClient(
            api_key="key-123",
            api_url="https://api.mail.test/emails",
            sender="alerts@example.com",
            recipients=["a@example.com", "b@example.com"],
            timeout=4,
        )

        with patch(POST, return_value=ok_response(202)) as mock_post:
            client.send("Subject", "Body")

        mock_post.assert_called_once_with(
            "https://api.mail.test/emails",
            json={
                "from": "alerts@example.com",
                "to": ["a@example.com", "b@example.com"],
                "subject": "Subject",
                "text": "Body",
            },
            headers={"Authorization": "Bearer key-123"},
            timeout=4,
        )

    @pytest.mark.parametrize("api_key, recipients", [(None, ["a@example.com"]), ("key", [])])
    def test_unconfigured_raises(self, api_key, recipients):
        client = EmailDigestClient(api_key, "https://api.mail.test", "x@example.com", recipients)
        with pytest.raises(NotificationDispatchError):
            client.send("s", "b")


class TestNotificationService:
    @pytest.fixture
    def service(self):
        return NotificationService(
            webhook_client=Mock(spec=WebhookClient),
            email_client=Mock(spec=EmailDigestClient),
            subject_prefix="[Test]",
        )

    def test_send_alert_success(self, service, message):
        result = service.send_alert(message)

        assert result.is_success()
        assert result.channel == NotificationChannel.WEBHOOK
        sent_text = service.webhook_client.send.call_args.args[0]
        assert "Product Manager" in sent_text

    def test_send_alert_failure_becomes_result(self, service, message):
        service.webhook_client.send.side_effect = NotificationDispatchError(
            "webhook delivery failed (500)", NotificationChannel.WEBHOOK, 500
        )

        result = service.send_alert(message)

        assert not result.is_success()
        assert result.status == "failed"
        assert result.error == "webhook delivery failed (500)"

    def test_send_digest_success(self, service, message, second_message):
        result = service.send_digest([message, second_message])

        assert result.is_success()
        subject, body = service.email_client.send.call_args.args
        assert subject == "[Test] 2 new matched role(s)"
        assert "Beta - Designer" in body

    def test_empty_digest_is_success_without_sending(self, service):
        result = service.send_digest([])

        assert result.is_success()
        service.email_client.send.assert_not_called()

    def test_send_digest_failure_becomes_result(self, service, message):
        service.email_client.send.side_effect = NotificationDispatchError(
            "email delivery failed (401)", NotificationChannel.EMAIL, 401
        )

        result = service.send_digest([message])

        assert result.status == "failed"
        assert result.channel == NotificationChannel.EMAIL
        assert result.error == "email delivery failed (401)"

    def test_unconfigured_webhook_fails_without_http(self, message):
        service = NotificationService.from_config(EnvironmentConfig())

        with patch(POST) as mock_post:
            result = service.send_alert(message)

        assert result.status == "failed"
        mock_post.assert_not_called()

    def test_from_config_wires_settings(self):
        env = EnvironmentConfig(
            webhook_url="https://hooks.example.test",
            email_api_key="key",
            alert_email_to="a@example.com, b@example.com",
            alert_email_from="sender@example.com",
        )
        config = NotificationsConfig(
            webhook_timeout=2, email_api_url="https://api.mail.test", email_subject_prefix="[JW]"
        )

        service = NotificationService.from_config(env, config)

        assert service.webhook_client.webhook_url == "https://hooks.example.test"
        assert service.webhook_client.timeout == 2
        assert service.email_client.recipients == ["a@example.com", "b@example.com"]
        assert service.email_client.sender == "sender@example.com"
        assert service.email_client.api_url == "https://api.mail.test"
        assert service.subject_prefix == "[JW]"
