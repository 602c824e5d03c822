"""Data access layer (repositories) for watches and alerts.

Repositories encapsulate database operations and return domain models rather
than ORM models. Every SQLAlchemy error is wrapped in a PersistenceError.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from job_watch.domain.models import (
    Alert,
    AlertStatus,
    NormalizedPosting,
    NotificationChannel,
    SourceType,
    UserDecision,
    Watch,
)
from job_watch.utils.timestamps import format_timestamp, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import AlertModel, WatchModel

logger = logging.getLogger(__name__)

# Keeps IN (...) lists well under SQLite's bound-parameter limit
BATCH_SIZE = 500

WATCH_UPDATABLE_FIELDS = (
    "company",
    "source_type",
    "source_id",
    "title_keywords",
    "location_keywords",
    "active",
)


def new_id() -> str:
    return uuid.uuid4().hex


def _chunks(items: Sequence[str], size: int = BATCH_SIZE) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class WatchRepository:
    """Repository for watch CRUD and check bookkeeping."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        company: str,
        source_type: SourceType | str,
        source_id: str,
        title_keywords: Iterable[str] = (),
        location_keywords: Iterable[str] = (),
        active: bool = True,
        now: Optional[datetime] = None,
    ) -> Watch:
        """Validate and insert a new watch.

        Raises:
            pydantic.ValidationError: If the fields do not form a valid Watch
            PersistenceError: If database error occurs
        """
        now = now or utc_now()
        watch = Watch(
            id=new_id(),
            company=company,
            source_type=source_type,
            source_id=source_id,
            title_keywords=list(title_keywords),
            location_keywords=list(location_keywords),
            active=active,
            created_at=now,
            updated_at=now,
        )

        try:
            model = WatchModel.from_domain(watch)
            self.session.add(model)
            self.session.flush()
            logger.info(
                f"Created watch {watch.id} for {watch.company}",
                extra={"event": "watch.created", "watch_id": watch.id},
            )
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error creating watch: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to create watch due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating watch: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create watch: {e}") from e

    def get(self, watch_id: str) -> Optional[Watch]:
        """Retrieve a watch by id, or None."""
        try:
            model = self.session.get(WatchModel, watch_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving watch {watch_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve watch: {e}") from e

    def list_all(self) -> List[Watch]:
        """All watches, most recently updated first."""
        return self._list(select(WatchModel))

    def list_active(self) -> List[Watch]:
        """Active watches, most recently updated first."""
        return self._list(select(WatchModel).where(WatchModel.active.is_(True)))

    def _list(self, stmt) -> List[Watch]:
        try:
            stmt = stmt.order_by(WatchModel.updated_at.desc(), WatchModel.id)
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing watches: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list watches: {e}") from e

    def update(self, watch_id: str, now: Optional[datetime] = None, **changes: Any) -> Watch:
        """Apply a partial update and bump updated_at.

        Only company, source_type, source_id, title_keywords, location_keywords
        and active can be changed; None values are ignored.

        Raises:
            ValueError: If no updatable field is given or an unknown field is passed
            pydantic.ValidationError: If the merged watch is invalid
            RecordNotFoundError: If the watch doesn't exist
            PersistenceError: If database error occurs
        """
        unknown = set(changes) - set(WATCH_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update watch fields: {', '.join(sorted(unknown))}")

        changes = {key: value for key, value in changes.items() if value is not None}
        if not changes:
            raise ValueError("No valid fields to update")

        try:
            model = self.session.get(WatchModel, watch_id)
            if model is None:
                raise RecordNotFoundError(f"Watch {watch_id} not found")

            current = model.to_domain()
            merged = Watch.model_validate(
                {
                    **current.model_dump(),
                    **changes,
                    "updated_at": now or utc_now(),
                }
            )

            refreshed = WatchModel.from_domain(merged)
            for field in WATCH_UPDATABLE_FIELDS + ("updated_at",):
                setattr(model, field, getattr(refreshed, field))

            self.session.flush()
            logger.info(
                f"Updated watch {watch_id}",
                extra={"event": "watch.updated", "watch_id": watch_id, "fields": sorted(changes)},
            )
            return model.to_domain()

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating watch {watch_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update watch: {e}") from e

    def delete(self, watch_id: str) -> int:
        """Delete a watch and all of its alerts.

        Returns:
            Number of alerts removed with the watch

        Raises:
            RecordNotFoundError: If the watch doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            if self.session.get(WatchModel, watch_id) is None:
                raise RecordNotFoundError(f"Watch {watch_id} not found")

            # Explicit so the cascade also holds where FK enforcement is off
            alerts_removed = self.session.execute(
                delete(AlertModel).where(AlertModel.watch_id == watch_id)
            ).rowcount
            self.session.execute(delete(WatchModel).where(WatchModel.id == watch_id))
            self.session.flush()
            self.session.expunge_all()

            logger.info(
                f"Deleted watch {watch_id}",
                extra={"event": "watch.deleted", "watch_id": watch_id, "alerts_removed": alerts_removed},
            )
            return alerts_removed

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error deleting watch {watch_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete watch: {e}") from e

    def touch_last_checked(self, watch_id: str, at: datetime) -> None:
        """Record a completed check. Does not change updated_at.

        Raises:
            RecordNotFoundError: If the watch doesn't exist
        """
        try:
            result = self.session.execute(
                update(WatchModel)
                .where(WatchModel.id == watch_id)
                .values(last_checked_at=format_timestamp(at))
                .execution_options(synchronize_session=False)
            )
            self.session.flush()

            if result.rowcount == 0:
                raise RecordNotFoundError(f"Watch {watch_id} not found")

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating last_checked_at for watch {watch_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update last_checked_at: {e}") from e


class AlertRepository:
    """Repository for alert reconciliation and review operations."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_key(self, watch_id: str, external_id: str) -> Optional[Alert]:
        """Look up the alert for a (watch, external id) pair."""
        try:
            stmt = select(AlertModel).where(
                AlertModel.watch_id == watch_id,
                AlertModel.external_id == external_id,
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(
                f"Error retrieving alert {watch_id}/{external_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to retrieve alert: {e}") from e

    def get(self, alert_id: str) -> Optional[Alert]:
        try:
            model = self.session.get(AlertModel, alert_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving alert {alert_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve alert: {e}") from e

    def create(
        self,
        watch_id: str,
        company: str,
        posting: NormalizedPosting,
        matched_keywords: List[str],
        now: datetime,
        channel: NotificationChannel = NotificationChannel.WEBHOOK,
    ) -> Alert:
        """Insert the first sighting of a posting for a watch.

        Raises:
            DataIntegrityError: If an alert already exists for (watch_id, external_id)
                or the watch doesn't exist
            PersistenceError: If database error occurs
        """
        alert = Alert(
            id=new_id(),
            watch_id=watch_id,
            external_id=posting.external_id,
            company=company,
            title=posting.title,
            url=posting.url,
            location=posting.location,
            posted_at=posting.posted_at,
            source_updated_at=posting.updated_at,
            matched_keywords=list(matched_keywords),
            channel=channel,
            status=AlertStatus.NEW,
            first_seen_at=now,
            last_seen_at=now,
            seen_count=1,
            is_active=True,
            repost_count=0,
            created_at=now,
        )

        try:
            model = AlertModel.from_domain(alert)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(
                f"Integrity error creating alert {watch_id}/{posting.external_id}: {e}",
                exc_info=True,
            )
            raise DataIntegrityError(f"Failed to create alert due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating alert: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create alert: {e}") from e

    def refresh_seen(
        self,
        alert_id: str,
        company: str,
        posting: NormalizedPosting,
        matched_keywords: List[str],
        now: datetime,
        reposted: bool = False,
    ) -> Alert:
        """Record another sighting of an existing alert's posting.

        Refreshes the posting snapshot, increments seen_count in the database,
        and re-activates the alert. posted_at and source_updated_at keep their
        stored values when the posting has none. A repost additionally bumps
        repost_count and resets the alert to status new.

        Raises:
            RecordNotFoundError: If the alert doesn't exist
            PersistenceError: If database error occurs
        """
        values: Dict[str, Any] = {
            "company": company,
            "title": posting.title,
            "url": posting.url,
            "location": posting.location,
            "matched_keywords": list(matched_keywords),
            "last_seen_at": format_timestamp(now),
            "seen_count": AlertModel.seen_count + 1,
            "is_active": True,
            "stale_at": None,
        }
        if posting.posted_at is not None:
            values["posted_at"] = format_timestamp(posting.posted_at)
        if posting.updated_at is not None:
            values["source_updated_at"] = format_timestamp(posting.updated_at)
        if reposted:
            values.update(
                repost_count=AlertModel.repost_count + 1,
                last_reposted_at=format_timestamp(now),
                status=AlertStatus.NEW.value,
                notified_at=None,
            )

        return self._update_one(alert_id, values, "refresh alert")

    def mark_notified(self, alert_id: str, channel: NotificationChannel, at: datetime) -> Alert:
        return self._update_one(
            alert_id,
            {
                "status": AlertStatus.NOTIFIED.value,
                "channel": channel.value,
                "notified_at": format_timestamp(at),
            },
            "mark alert notified",
        )

    def mark_failed(self, alert_id: str) -> Alert:
        return self._update_one(
            alert_id, {"status": AlertStatus.FAILED.value}, "mark alert failed"
        )

    def mark_many_notified(
        self, alert_ids: Sequence[str], channel: NotificationChannel, at: datetime
    ) -> int:
        """Mark a batch of alerts notified through one channel. Returns rows updated."""
        alert_ids = list(dict.fromkeys(alert_ids))
        if not alert_ids:
            return 0

        values = {
            "status": AlertStatus.NOTIFIED.value,
            "channel": channel.value,
            "notified_at": format_timestamp(at),
        }
        try:
            updated = 0
            for chunk in _chunks(alert_ids):
                result = self.session.execute(
                    update(AlertModel)
                    .where(AlertModel.id.in_(chunk))
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                updated += result.rowcount
            self.session.flush()
            self.session.expire_all()
            return updated
        except SQLAlchemyError as e:
            logger.error(f"Error marking alerts notified: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark alerts notified: {e}") from e

    def mark_stale_except(
        self, watch_id: str, external_ids: Iterable[str], at: datetime
    ) -> int:
        """Deactivate a watch's active alerts whose external id is not in external_ids.

        Returns:
            Number of alerts newly marked stale
        """
        keep = set(external_ids)
        try:
            active = self.session.execute(
                select(AlertModel.id, AlertModel.external_id).where(
                    AlertModel.watch_id == watch_id,
                    AlertModel.is_active.is_(True),
                )
            ).all()
            stale_ids = [row.id for row in active if row.external_id not in keep]

            for chunk in _chunks(stale_ids):
                self.session.execute(
                    update(AlertModel)
                    .where(AlertModel.id.in_(chunk))
                    .values(is_active=False, stale_at=format_timestamp(at))
                    .execution_options(synchronize_session=False)
                )
            self.session.flush()
            self.session.expire_all()
            return len(stale_ids)
        except SQLAlchemyError as e:
            logger.error(f"Error marking stale alerts for watch {watch_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark stale alerts: {e}") from e

    def list_recent(self, limit: int = 50) -> List[Tuple[Alert, Watch]]:
        """Most recently created alerts with their watches, newest first."""
        try:
            stmt = (
                select(AlertModel, WatchModel)
                .join(WatchModel, AlertModel.watch_id == WatchModel.id)
                .order_by(AlertModel.created_at.desc(), AlertModel.id)
                .limit(limit)
            )
            return [
                (alert.to_domain(), watch.to_domain())
                for alert, watch in self.session.execute(stmt).all()
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error listing recent alerts: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list alerts: {e}") from e

    def set_decision(
        self, alert_id: str, decision: UserDecision, note: str, at: datetime
    ) -> Alert:
        """Store the user's decision; decided_at is cleared for the empty decision."""
        return self._update_one(
            alert_id,
            {
                "user_decision": decision.value,
                "decision_note": note,
                "decided_at": format_timestamp(at) if decision != UserDecision.NONE else None,
            },
            "record alert decision",
        )

    def _update_one(self, alert_id: str, values: Dict[str, Any], action: str) -> Alert:
        try:
            result = self.session.execute(
                update(AlertModel)
                .where(AlertModel.id == alert_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise RecordNotFoundError(f"Alert {alert_id} not found")

            self.session.flush()
            model = self.session.get(AlertModel, alert_id, populate_existing=True)
            return model.to_domain()

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action} {alert_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to {action}: {e}") from e
