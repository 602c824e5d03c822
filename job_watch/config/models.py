"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class CheckConfig(BaseModel):
    """Settings for alert check cycles."""

    notify: bool = Field(True, description="Dispatch notifications for new and reposted alerts")
    max_runtime: str = Field("30s", description="Wall-clock budget for one check cycle")
    scan_interval: str = Field("30m", description="Interval between scheduled check cycles")
    preview_sample_size: int = Field(
        25, ge=1, le=500, description="Postings evaluated by a preview check"
    )
    preview_source_timeout: float = Field(
        1.5, gt=0, le=60, description="Source request timeout for preview checks (seconds)"
    )

    # Computed fields
    max_runtime_seconds: Optional[int] = None
    scan_interval_seconds: Optional[int] = None

    @field_validator("max_runtime")
    @classmethod
    def validate_max_runtime(cls, v: str) -> str:
        """Validate the run budget is a duration between 1 second and 1 hour."""
        try:
            validate_duration_range(
                parse_duration(v), min_seconds=1, max_seconds=3600, label="Max runtime"
            )
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @field_validator("scan_interval")
    @classmethod
    def validate_scan_interval(cls, v: str) -> str:
        """Validate and parse scan interval."""
        try:
            validate_duration_range(parse_duration(v), min_seconds=300, max_seconds=86400)
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def compute_seconds(self):
        """Compute derived duration fields."""
        self.max_runtime_seconds = parse_duration(self.max_runtime)
        self.scan_interval_seconds = parse_duration(self.scan_interval)
        return self

    @property
    def max_runtime_ms(self) -> int:
        return self.max_runtime_seconds * 1000


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AdvancedConfig(BaseModel):
    """Advanced runtime settings."""

    http_request_timeout: float = Field(
        30, gt=0, le=300, description="Request timeout for job board API calls (seconds)"
    )
    user_agent: str = Field(
        "JobWatch/1.0",
        min_length=1,
        description="User-Agent string for HTTP requests",
    )

    @field_validator("user_agent")
    @classmethod
    def strip_user_agent(cls, v: str) -> str:
        """Strip whitespace from user agent."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("user_agent cannot be empty")
        return stripped


class NotificationsConfig(BaseModel):
    """Notification delivery settings."""

    webhook_timeout: float = Field(
        5, gt=0, le=60, description="Timeout for webhook and email API calls (seconds)"
    )
    email_api_url: str = Field(
        "https://api.resend.com/emails", description="Transactional email API endpoint"
    )
    email_subject_prefix: str = Field("[Job Watch]", description="Prefix for digest subjects")

    @field_validator("email_api_url")
    @classmethod
    def validate_email_api_url(cls, v: str) -> str:
        """Require an http(s) endpoint."""
        stripped = v.strip()
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("email_api_url must start with http:// or https://")
        return stripped


class AppConfig(BaseModel):
    """Root configuration object for Job Watch."""

    check: CheckConfig = Field(default_factory=CheckConfig, description="Check cycle settings")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    advanced: AdvancedConfig = Field(
        default_factory=AdvancedConfig, description="Advanced runtime settings"
    )
    notifications: NotificationsConfig = Field(
        default_factory=NotificationsConfig, description="Notification settings"
    )
