"""Check pipeline: fetch, match, reconcile and notify for every active watch."""

import threading
import time
from datetime import datetime
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from job_watch.adapters.exceptions import SourceFetchError
from job_watch.adapters.factory import get_adapter
from job_watch.config.models import AppConfig
from job_watch.domain.models import (
    Alert,
    NormalizedPosting,
    NotificationChannel,
    Watch,
)
from job_watch.logging import get_logger
from job_watch.logging.context import log_context
from job_watch.matching.engine import match_posting
from job_watch.matching.models import MatchResult
from job_watch.notifications.models import AlertMessage
from job_watch.notifications.service import NotificationService
from job_watch.persistence.database import get_session
from job_watch.persistence.repositories import AlertRepository, WatchRepository
from job_watch.utils.timestamps import utc_now

from .models import (
    TIMEOUT_ERROR,
    CheckOptions,
    CheckSummary,
    PreviewResult,
    QueuedAlert,
    WatchRunStats,
)
from .preview import preview_watch

logger = get_logger(__name__, component="pipeline")


def is_repost(existing: Alert, posting: NormalizedPosting) -> bool:
    """A sighting is a repost if the source's updated_at advanced or the alert was stale."""
    source_updated = posting.updated_at is not None and (
        existing.source_updated_at is None or posting.updated_at > existing.source_updated_at
    )
    return source_updated or not existing.is_active


class AlertCheckPipeline:
    """
    Runs check cycles across all active watches.

    Watches are processed sequentially, most recently updated first. Each
    watch is reconciled inside its own database session, so a watch is either
    fully applied or not touched at all. A failed fetch is recorded against
    its watch and the run moves on; persistence errors abort the run.
    """

    def __init__(
        self,
        app_config: AppConfig,
        notification_service: NotificationService,
        adapter_factory: Callable = get_adapter,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the check pipeline.

        Args:
            app_config: Application configuration
            notification_service: Webhook and email digest delivery
            adapter_factory: Returns an adapter for (source_type, advanced_config, timeout=)
            clock: Monotonic seconds, used for the run deadline
            now: Current UTC time, used for stored timestamps
        """
        self.app_config = app_config
        self.notification_service = notification_service
        self.adapter_factory = adapter_factory
        self._clock = clock
        self._now = now
        self._lock = threading.Lock()

    def default_options(self) -> CheckOptions:
        """Options taken from the check section of the configuration."""
        return CheckOptions(
            notify=self.app_config.check.notify,
            max_runtime_ms=self.app_config.check.max_runtime_ms,
        )

    def run_once(self, options: Optional[CheckOptions] = None) -> CheckSummary:
        """
        Execute one check cycle.

        Returns:
            CheckSummary; skipped=True when another cycle is still running in
            this process, timed_out=True when the budget ran out between watches

        Raises:
            PersistenceError: If the store cannot be read or written
        """
        options = options or self.default_options()
        run_id = uuid4().hex
        started_at = self._now()

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Check run skipped: previous run still in progress",
                    extra={"event": "check.run.skipped", "reason": "lock_held"},
                )
            return CheckSummary(started_at=started_at, finished_at=self._now(), skipped=True)

        try:
            with log_context(run_id=run_id):
                return self._run(options, started_at)
        finally:
            self._lock.release()

    def _run(self, options: CheckOptions, started_at: datetime) -> CheckSummary:
        run_start = self._clock()
        budget_seconds = options.max_runtime_ms / 1000
        summary = CheckSummary(started_at=started_at)
        digest_queue: List[QueuedAlert] = []

        with get_session() as session:
            watches = WatchRepository(session).list_active()
        if options.max_watches is not None:
            watches = watches[: options.max_watches]

        logger.info(
            f"Check run started for {len(watches)} active watch(es)",
            extra={
                "event": "check.run.started",
                "watch_count": len(watches),
                "notify": options.notify,
                "max_runtime_ms": options.max_runtime_ms,
            },
        )

        for watch in watches:
            if self._clock() - run_start > budget_seconds:
                summary.timed_out = True
                summary.errors.append(TIMEOUT_ERROR)
                logger.warning(
                    "Check run budget exhausted",
                    extra={
                        "event": "check.run.timed_out",
                        "watches_checked": summary.watches_checked,
                        "watches_remaining": len(watches) - summary.watches_checked,
                    },
                )
                break

            summary.add(self._check_watch(watch, options, digest_queue))

        if options.notify and digest_queue:
            self._send_digest(digest_queue, summary)

        summary.finished_at = self._now()
        logger.info(
            "Check run completed",
            extra={
                "event": "check.run.completed",
                "duration_ms": int(summary.duration_seconds * 1000),
                **{key: value for key, value in summary.to_dict().items() if key != "errors"},
                "error_count": len(summary.errors),
            },
        )
        return summary

    def _check_watch(
        self, watch: Watch, options: CheckOptions, digest_queue: List[QueuedAlert]
    ) -> WatchRunStats:
        """Fetch, reconcile and notify for a single watch."""
        stats = WatchRunStats(watch_id=watch.id, company=watch.company)

        with log_context(
            watch_id=watch.id,
            company=watch.company,
            source_type=watch.source_type.value,
        ):
            try:
                adapter = self.adapter_factory(
                    watch.source_type,
                    self.app_config.advanced,
                    timeout=options.source_timeout_seconds,
                )
                postings = adapter.fetch_postings(watch.source_id)
            except SourceFetchError as e:
                stats.error = f"{watch.company}: {e}"
                logger.error(
                    f"Fetch failed for {watch.company}: {e}",
                    extra={
                        "event": "watch.check.failed",
                        "source_id": watch.source_id,
                        "error_type": type(e).__name__,
                    },
                )
                return stats

            stats.fetched_count = len(postings)
            now = self._now()
            queued: List[QueuedAlert] = []

            with get_session() as session:
                alerts = AlertRepository(session)
                matched_ids = set()

                for posting in postings:
                    match = match_posting(posting, watch.title_keywords, watch.location_keywords)
                    if not match.matched:
                        continue

                    stats.matched_count += 1
                    matched_ids.add(posting.external_id)

                    alert, notifiable = self._reconcile(alerts, watch, posting, match, now, stats)
                    if not (notifiable and options.notify and match.notifiable):
                        continue

                    self._notify(alerts, watch, alert, posting, match, stats, queued)

                stats.staled_count = alerts.mark_stale_except(watch.id, matched_ids, now)
                WatchRepository(session).touch_last_checked(watch.id, now)

            digest_queue.extend(queued)

            if stats.staled_count:
                logger.info(
                    f"Marked {stats.staled_count} alert(s) stale",
                    extra={"event": "alerts.staled", "count": stats.staled_count},
                )
            logger.info(
                f"Checked {watch.company}: {stats.fetched_count} fetched, "
                f"{stats.matched_count} matched, {stats.created_count} new, "
                f"{stats.reposted_count} reposted",
                extra={
                    "event": "watch.check.completed",
                    "fetched": stats.fetched_count,
                    "matched": stats.matched_count,
                    "created": stats.created_count,
                    "reposted": stats.reposted_count,
                    "notified": stats.notified_count,
                    "queued": len(queued),
                    "staled": stats.staled_count,
                },
            )

        return stats

    def _reconcile(
        self,
        alerts: AlertRepository,
        watch: Watch,
        posting: NormalizedPosting,
        match: MatchResult,
        now: datetime,
        stats: WatchRunStats,
    ) -> Tuple[Alert, bool]:
        """Create or refresh the alert for a matched posting.

        Returns:
            (alert, notifiable) where notifiable is True for first sightings and reposts
        """
        existing = alerts.get_by_key(watch.id, posting.external_id)

        if existing is None:
            alert = alerts.create(
                watch.id,
                watch.company,
                posting,
                match.matched_keywords,
                now,
                channel=NotificationChannel.WEBHOOK,
            )
            stats.created_count += 1
            logger.info(
                f"New alert: {posting.title}",
                extra={
                    "event": "alert.created",
                    "alert_id": alert.id,
                    "external_id": posting.external_id,
                    "hidden_by_keyword": match.hidden_by_keyword,
                },
            )
            return alert, True

        reposted = is_repost(existing, posting)
        alert = alerts.refresh_seen(
            existing.id,
            watch.company,
            posting,
            match.matched_keywords,
            now,
            reposted=reposted,
        )

        if reposted:
            stats.reposted_count += 1
            logger.info(
                f"Reposted alert: {posting.title}",
                extra={
                    "event": "alert.reposted",
                    "alert_id": alert.id,
                    "external_id": posting.external_id,
                    "repost_count": alert.repost_count,
                    "was_stale": not existing.is_active,
                },
            )

        return alert, reposted

    def _notify(
        self,
        alerts: AlertRepository,
        watch: Watch,
        alert: Alert,
        posting: NormalizedPosting,
        match: MatchResult,
        stats: WatchRunStats,
        queued: List[QueuedAlert],
    ) -> None:
        message = AlertMessage(
            company=watch.company,
            title=posting.title,
            url=posting.url,
            location=posting.location,
            source_type=watch.source_type.value,
            matched_keywords=list(match.matched_keywords),
        )

        result = self.notification_service.send_alert(message)
        if result.is_success():
            alerts.mark_notified(alert.id, NotificationChannel.WEBHOOK, self._now())
            stats.notified_count += 1
            return

        alerts.mark_failed(alert.id)
        queued.append(QueuedAlert(alert_id=alert.id, message=message))
        logger.info(
            "Alert queued for email digest",
            extra={"event": "alert.queued", "alert_id": alert.id, "error": result.error},
        )

    def _send_digest(self, digest_queue: List[QueuedAlert], summary: CheckSummary) -> None:
        """One all-or-nothing email for every alert the webhook missed."""
        result = self.notification_service.send_digest([q.message for q in digest_queue])

        if not result.is_success():
            summary.errors.append(result.error or "Email digest failed")
            return

        with get_session() as session:
            AlertRepository(session).mark_many_notified(
                [q.alert_id for q in digest_queue],
                NotificationChannel.EMAIL,
                self._now(),
            )
        summary.alerts_notified += len(digest_queue)

    def preview(
        self,
        watch_id: Optional[str] = None,
        sample_size: Optional[int] = None,
        source_timeout_ms: Optional[int] = None,
    ) -> PreviewResult:
        """Dry-run the match gate for one watch using the configured preview limits."""
        check = self.app_config.check
        return preview_watch(
            self.app_config,
            watch_id=watch_id,
            sample_size=sample_size or check.preview_sample_size,
            source_timeout_ms=source_timeout_ms or int(check.preview_source_timeout * 1000),
            adapter_factory=self.adapter_factory,
        )
