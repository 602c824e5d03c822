"""Core domain models for watches, postings, and alerts.

This module defines the data structures used throughout the application:
- NormalizedPosting: source-agnostic job posting produced by the adapters
- Watch: a saved monitoring target (company + source + keyword filters)
- Alert: durable record that a watch has seen a given posting
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from job_watch.utils.timestamps import ensure_utc


class SourceType(str, Enum):
    """Supported job board sources."""

    GREENHOUSE = "greenhouse"
    LEVER = "lever"
    ASHBY = "ashby"


class AlertStatus(str, Enum):
    """Notification lifecycle of an alert."""

    NEW = "new"
    NOTIFIED = "notified"
    FAILED = "failed"


class NotificationChannel(str, Enum):
    """Channels an alert can be delivered through."""

    WEBHOOK = "webhook"
    EMAIL = "email"


class UserDecision(str, Enum):
    """What the user decided to do about an alert."""

    NONE = ""
    APPLIED = "applied"
    SKIP = "skip"


def _clean_keywords(values: List[str]) -> List[str]:
    cleaned = []
    for value in values:
        stripped = value.strip()
        if stripped:
            cleaned.append(stripped)
    return cleaned


class NormalizedPosting(BaseModel):
    """Job posting in the shape every source adapter produces.

    The external_id is provider-native and must be stable across repeated
    fetches of the same board; together with the owning watch it is the
    deduplication key. Postings are never persisted directly.
    """

    external_id: str = Field(..., min_length=1, description="Posting ID from the source")
    title: str = Field(..., description="Posting title")
    url: str = Field(..., description="Link to the posting")
    location: str = Field("", description="Location text, empty when unknown")
    posted_at: Optional[datetime] = Field(None, description="When the posting was created (UTC)")
    updated_at: Optional[datetime] = Field(None, description="When the source last updated it (UTC)")

    @field_validator("posted_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    model_config = {"json_schema_extra": {"example": {
        "external_id": "4012345",
        "title": "Product Manager, Platform",
        "url": "https://boards.greenhouse.io/examplecorp/jobs/4012345",
        "location": "Remote - US",
        "posted_at": None,
        "updated_at": "2025-11-02T14:30:00Z",
    }}}


class Watch(BaseModel):
    """A user-configured monitoring target.

    Keyword lists keep their order; entries are stripped and blanks dropped.
    Comparison is always case-insensitive, so casing is preserved as entered.
    """

    id: str = Field(..., description="Watch identifier")
    company: str = Field(..., description="Company display name")
    source_type: SourceType = Field(..., description="Job board type")
    source_id: str = Field(..., description="Board/org slug used by the source API")
    title_keywords: List[str] = Field(default_factory=list)
    location_keywords: List[str] = Field(default_factory=list)
    active: bool = Field(True, description="Whether the watch is checked by runs")
    last_checked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("company", "source_id")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from string fields."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    @field_validator("title_keywords", "location_keywords")
    @classmethod
    def clean_keywords(cls, v: List[str]) -> List[str]:
        """Strip keywords and remove empty entries."""
        return _clean_keywords(v)

    @field_validator("last_checked_at", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)


class Alert(BaseModel):
    """Durable record of "watch W has seen posting P".

    (watch_id, external_id) is unique. An active alert always has
    stale_at=None; seen_count never decreases.
    """

    id: str
    watch_id: str
    external_id: str
    company: str
    title: str
    url: str
    location: str = ""
    posted_at: Optional[datetime] = None
    source_updated_at: Optional[datetime] = None
    matched_keywords: List[str] = Field(default_factory=list)
    channel: NotificationChannel = NotificationChannel.WEBHOOK
    status: AlertStatus = AlertStatus.NEW
    first_seen_at: datetime
    last_seen_at: datetime
    seen_count: int = Field(1, ge=1)
    is_active: bool = True
    stale_at: Optional[datetime] = None
    repost_count: int = Field(0, ge=0)
    last_reposted_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None
    user_decision: UserDecision = UserDecision.NONE
    decision_note: str = ""
    decided_at: Optional[datetime] = None
    created_at: datetime

    @field_validator(
        "posted_at",
        "source_updated_at",
        "first_seen_at",
        "last_seen_at",
        "stale_at",
        "last_reposted_at",
        "notified_at",
        "decided_at",
        "created_at",
    )
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)
