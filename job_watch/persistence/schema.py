"""Database schema definition and ORM models.

This module defines SQLAlchemy ORM models for watches and alerts and the
conversions between ORM rows and domain models. Timestamps are stored as
ISO 8601 strings with a 'Z' suffix, so lexical order is chronological order.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from job_watch.domain.models import (
    Alert,
    AlertStatus,
    NotificationChannel,
    SourceType,
    UserDecision,
    Watch,
)
from job_watch.utils.timestamps import format_timestamp, parse_iso_datetime

logger = logging.getLogger(__name__)

Base = declarative_base()


class WatchModel(Base):
    """ORM model for the watches table."""

    __tablename__ = "watches"

    id = Column(String(32), primary_key=True, nullable=False)

    company = Column(String(255), nullable=False)
    source_type = Column(String(20), nullable=False)
    source_id = Column(String(255), nullable=False)

    # Ordered keyword lists
    title_keywords = Column(JSON, nullable=False, default=list)
    location_keywords = Column(JSON, nullable=False, default=list)

    active = Column(Boolean, nullable=False, default=True)

    # Timestamps (stored as ISO 8601 strings)
    last_checked_at = Column(String(50), nullable=True)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_watches_active_updated", "active", "updated_at"),)

    def to_domain(self) -> Watch:
        return Watch(
            id=self.id,
            company=self.company,
            source_type=SourceType(self.source_type),
            source_id=self.source_id,
            title_keywords=_string_list(self.title_keywords),
            location_keywords=_string_list(self.location_keywords),
            active=bool(self.active),
            last_checked_at=_parse_datetime(self.last_checked_at),
            created_at=_parse_datetime(self.created_at),
            updated_at=_parse_datetime(self.updated_at),
        )

    @classmethod
    def from_domain(cls, watch: Watch) -> "WatchModel":
        return cls(
            id=watch.id,
            company=watch.company,
            source_type=watch.source_type.value,
            source_id=watch.source_id,
            title_keywords=list(watch.title_keywords),
            location_keywords=list(watch.location_keywords),
            active=watch.active,
            last_checked_at=_format_datetime(watch.last_checked_at),
            created_at=_format_datetime(watch.created_at),
            updated_at=_format_datetime(watch.updated_at),
        )


class AlertModel(Base):
    """ORM model for the alerts table.

    One row per (watch, external id), ever. Rows go away only when their
    watch is deleted.
    """

    __tablename__ = "alerts"

    id = Column(String(32), primary_key=True, nullable=False)
    watch_id = Column(
        String(32),
        ForeignKey("watches.id", ondelete="CASCADE"),
        nullable=False,
    )
    external_id = Column(String(255), nullable=False)

    # Posting snapshot
    company = Column(String(255), nullable=False)
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=False)
    location = Column(String(255), nullable=False, default="")
    posted_at = Column(String(50), nullable=True)
    source_updated_at = Column(String(50), nullable=True)
    matched_keywords = Column(JSON, nullable=False, default=list)

    # Notification state
    channel = Column(String(20), nullable=False, default=NotificationChannel.WEBHOOK.value)
    status = Column(String(20), nullable=False, default=AlertStatus.NEW.value)
    notified_at = Column(String(50), nullable=True)

    # Sighting state
    first_seen_at = Column(String(50), nullable=False)
    last_seen_at = Column(String(50), nullable=False)
    seen_count = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    stale_at = Column(String(50), nullable=True)
    repost_count = Column(Integer, nullable=False, default=0)
    last_reposted_at = Column(String(50), nullable=True)

    # User review
    user_decision = Column(String(20), nullable=False, default="")
    decision_note = Column(Text, nullable=False, default="")
    decided_at = Column(String(50), nullable=True)

    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("watch_id", "external_id", name="uq_alerts_watch_external"),
        Index("idx_alerts_watch_active", "watch_id", "is_active"),
        Index("idx_alerts_created_at", "created_at"),
    )

    def to_domain(self) -> Alert:
        return Alert(
            id=self.id,
            watch_id=self.watch_id,
            external_id=self.external_id,
            company=self.company,
            title=self.title,
            url=self.url,
            location=self.location or "",
            posted_at=_parse_datetime(self.posted_at),
            source_updated_at=_parse_datetime(self.source_updated_at),
            matched_keywords=_string_list(self.matched_keywords),
            channel=NotificationChannel(self.channel),
            status=AlertStatus(self.status),
            first_seen_at=_parse_datetime(self.first_seen_at),
            last_seen_at=_parse_datetime(self.last_seen_at),
            seen_count=self.seen_count,
            is_active=bool(self.is_active),
            stale_at=_parse_datetime(self.stale_at),
            repost_count=self.repost_count,
            last_reposted_at=_parse_datetime(self.last_reposted_at),
            notified_at=_parse_datetime(self.notified_at),
            user_decision=UserDecision(self.user_decision or ""),
            decision_note=self.decision_note or "",
            decided_at=_parse_datetime(self.decided_at),
            created_at=_parse_datetime(self.created_at),
        )

    @classmethod
    def from_domain(cls, alert: Alert) -> "AlertModel":
        return cls(
            id=alert.id,
            watch_id=alert.watch_id,
            external_id=alert.external_id,
            company=alert.company,
            title=alert.title,
            url=alert.url,
            location=alert.location,
            posted_at=_format_datetime(alert.posted_at),
            source_updated_at=_format_datetime(alert.source_updated_at),
            matched_keywords=list(alert.matched_keywords),
            channel=alert.channel.value,
            status=alert.status.value,
            first_seen_at=_format_datetime(alert.first_seen_at),
            last_seen_at=_format_datetime(alert.last_seen_at),
            seen_count=alert.seen_count,
            is_active=alert.is_active,
            stale_at=_format_datetime(alert.stale_at),
            repost_count=alert.repost_count,
            last_reposted_at=_format_datetime(alert.last_reposted_at),
            notified_at=_format_datetime(alert.notified_at),
            user_decision=alert.user_decision.value,
            decision_note=alert.decision_note,
            decided_at=_format_datetime(alert.decided_at),
            created_at=_format_datetime(alert.created_at),
        )


def _string_list(value) -> list:
    """Stored JSON list, keeping only string entries."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    return format_timestamp(dt)


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    if not dt_str:
        return None
    return parse_iso_datetime(dt_str)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)

        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")

    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
