"""Environment variable loading and validation."""

import os
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/job_watch.db"
DEFAULT_EMAIL_FROM = "alerts@job-watch.local"


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        email_api_key: Optional[str] = None,
        alert_email_to: Optional[str] = None,
        alert_email_from: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        """Initialize environment configuration."""
        self.webhook_url = webhook_url
        self.email_api_key = email_api_key
        self.alert_email_to = alert_email_to
        self.alert_email_from = alert_email_from or DEFAULT_EMAIL_FROM
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.environment = environment or "local"

    @property
    def recipients(self) -> List[str]:
        """Digest recipients parsed from ALERT_EMAIL_TO (empty when unset)."""
        if not self.alert_email_to:
            return []
        return parse_recipients(self.alert_email_to)


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    All variables are optional; a missing webhook or email setting only
    disables that notification channel.

    - ALERT_WEBHOOK_URL: Incoming-webhook URL for per-alert messages
    - EMAIL_API_KEY: API key for the transactional email fallback
    - ALERT_EMAIL_TO: Comma-separated digest recipients
    - ALERT_EMAIL_FROM: Sender address for digests
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - DATABASE_URL: Database URL (default: sqlite:///./data/job_watch.db)
    - ENVIRONMENT: Environment label used in logs (default: local)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If any variable is set to an invalid value
    """
    errors = []

    webhook_url = os.getenv("ALERT_WEBHOOK_URL")
    email_api_key = os.getenv("EMAIL_API_KEY")
    alert_email_to = os.getenv("ALERT_EMAIL_TO")
    alert_email_from = os.getenv("ALERT_EMAIL_FROM")
    log_level = os.getenv("LOG_LEVEL")
    database_url = os.getenv("DATABASE_URL")
    environment = os.getenv("ENVIRONMENT")

    if webhook_url and not webhook_url.startswith(("http://", "https://")):
        errors.append(
            f"Invalid ALERT_WEBHOOK_URL: '{webhook_url}'. Must be an http(s) URL."
        )

    if alert_email_to:
        try:
            parse_recipients(alert_email_to)
        except ValueError as e:
            errors.append(str(e))

    if alert_email_from:
        try:
            validate_email(alert_email_from, check_deliverability=False)
        except EmailNotValidError as e:
            errors.append(f"Invalid ALERT_EMAIL_FROM: '{alert_email_from}' - {e}")

    if log_level:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

    if email_api_key and not alert_email_to:
        errors.append("EMAIL_API_KEY is set but ALERT_EMAIL_TO is not.")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Check that email addresses are valid",
                "Leave notification variables unset to disable a channel",
            ],
        )

    return EnvironmentConfig(
        webhook_url=webhook_url,
        email_api_key=email_api_key,
        alert_email_to=alert_email_to,
        alert_email_from=alert_email_from,
        log_level=log_level.upper() if log_level else None,
        database_url=database_url,
        environment=environment,
    )


def parse_recipients(recipient_string: str) -> List[str]:
    """Parse and validate comma-separated email addresses.

    Args:
        recipient_string: Comma-separated email addresses

    Returns:
        List of normalized email addresses

    Raises:
        ValueError: If any email address is invalid or none are given
    """
    recipients = []
    for email in (part.strip() for part in recipient_string.split(",")):
        if not email:
            continue
        try:
            validated = validate_email(email, check_deliverability=False)
            recipients.append(validated.normalized)
        except EmailNotValidError as e:
            raise ValueError(
                f"Invalid email address in ALERT_EMAIL_TO: '{email}' - {e}"
            ) from e

    if not recipients:
        raise ValueError("No valid email addresses found in ALERT_EMAIL_TO")

    return recipients
