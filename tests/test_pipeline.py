"""Unit tests for the check pipeline.

Covers reconciliation (create, refresh, stale, repost), the notification
fallback to the email digest, per-watch error isolation, the run budget and
the in-process skip guard.
"""

from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from job_watch.adapters.exceptions import SourceHTTPError, SourceTimeoutError
from job_watch.domain.models import AlertStatus, NotificationChannel
from job_watch.notifications.models import NotificationResult
from job_watch.persistence.database import get_session
from job_watch.persistence.exceptions import PersistenceError
from job_watch.persistence.repositories import AlertRepository, WatchRepository
from job_watch.pipeline import TIMEOUT_ERROR, AlertCheckPipeline, CheckOptions, is_repost

from helpers import make_posting


class TickingMonotonic:
    """Monotonic clock returning the queued readings, then repeating the last."""

    def __init__(self, *readings: float):
        self.readings = list(readings) or [0.0]

    def __call__(self) -> float:
        if len(self.readings) > 1:
            return self.readings.pop(0)
        return self.readings[0]


@pytest.fixture
def pipeline(app_config, notifier, adapter_factory, clock, temp_database):
    return AlertCheckPipeline(
        app_config,
        notifier,
        adapter_factory=adapter_factory,
        clock=TickingMonotonic(0.0),
        now=clock,
    )


def alerts_for(watch_id, limit=200):
    with get_session() as session:
        rows = AlertRepository(session).list_recent(limit)
    return sorted(
        (alert for alert, _ in rows if alert.watch_id == watch_id),
        key=lambda a: a.external_id,
    )


def quiet():
    return CheckOptions(notify=False)


class TestReconciliation:
    """Alert lifecycle across runs."""

    def test_first_run_creates_alerts(self, pipeline, create_watch, adapter_factory):
        """Every matched posting becomes one alert on the first sighting."""
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [
            make_posting("1", "Product Manager"),
            make_posting("2", "Data Engineer"),
        ]

        summary = pipeline.run_once(quiet())

        assert summary.watches_checked == 1
        assert summary.postings_fetched == 2
        assert summary.matches_found == 2
        assert summary.alerts_created == 2
        assert summary.errors == []

        alerts = alerts_for(watch.id)
        assert [a.external_id for a in alerts] == ["1", "2"]
        for alert in alerts:
            assert alert.status == AlertStatus.NEW
            assert alert.seen_count == 1
            assert alert.is_active is True
            assert alert.company == "Acme"

    def test_second_identical_run_is_idempotent(self, pipeline, create_watch, adapter_factory, notifier):
        """No new alerts and no notifications; seen_count grows by one per run."""
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM"), make_posting("2", "Designer")]

        pipeline.run_once()
        sent_after_first = notifier.send_alert.call_count
        second = pipeline.run_once()
        third = pipeline.run_once()

        assert second.alerts_created == 0
        assert third.alerts_created == 0
        assert second.alerts_reposted == 0
        assert notifier.send_alert.call_count == sent_after_first == 2
        assert [a.seen_count for a in alerts_for(watch.id)] == [3, 3]

    def test_duplicate_ids_in_one_fetch_produce_one_alert(self, pipeline, create_watch, adapter_factory):
        """Ashby title-as-id fallback can repeat ids; they collapse into one alert."""
        watch = create_watch(source_type="ashby", source_id="acme")
        adapter_factory.boards["acme"] = [
            make_posting("Engineer", "Engineer", location="NYC"),
            make_posting("Engineer", "Engineer", location="SF"),
        ]

        summary = pipeline.run_once(quiet())

        alerts = alerts_for(watch.id)
        assert len(alerts) == 1
        assert summary.alerts_created == 1
        assert alerts[0].seen_count == 2

    def test_stale_then_repost_scenario(self, pipeline, create_watch, adapter_factory):
        """Posting disappears, goes stale, then reappears as a repost."""
        watch = create_watch(company="OpenAI", source_id="openai")

        adapter_factory.boards["openai"] = [make_posting("1", "PM")]
        first = pipeline.run_once(quiet())
        (alert,) = alerts_for(watch.id)
        assert first.alerts_created == 1
        assert alert.status == AlertStatus.NEW
        assert alert.seen_count == 1
        assert alert.is_active is True

        adapter_factory.boards["openai"] = []
        second = pipeline.run_once(quiet())
        (alert,) = alerts_for(watch.id)
        assert second.alerts_staled == 1
        assert alert.is_active is False
        assert alert.stale_at is not None
        assert alert.seen_count == 1

        adapter_factory.boards["openai"] = [make_posting("1", "PM")]
        third = pipeline.run_once(quiet())
        (alert,) = alerts_for(watch.id)
        assert third.alerts_reposted == 1
        assert third.alerts_created == 1
        assert alert.is_active is True
        assert alert.stale_at is None
        assert alert.repost_count == 1
        assert alert.status == AlertStatus.NEW
        assert alert.seen_count == 2
        assert alert.last_reposted_at is not None

    def test_reordered_large_board_keeps_every_alert_active(
        self, app_config, notifier, create_watch, clock, temp_database
    ):
        """Every posting the provider returns is reconciled, however long the board."""
        watch = create_watch(source_id="acme")
        jobs = [
            {"id": i, "title": f"Role {i}", "absolute_url": f"https://example.test/jobs/{i}"}
            for i in range(1100)
        ]
        boards = [jobs, list(reversed(jobs)), jobs]
        pipeline = AlertCheckPipeline(
            app_config, notifier, clock=TickingMonotonic(0.0), now=clock
        )

        summaries = []
        for board in boards:
            response = Mock(status_code=200)
            response.json.return_value = {"jobs": board}
            with patch("requests.Session.request", return_value=response):
                summaries.append(pipeline.run_once(quiet()))

        assert summaries[0].alerts_created == 1100
        for later in summaries[1:]:
            assert later.postings_fetched == 1100
            assert later.alerts_staled == 0
            assert later.alerts_reposted == 0
            assert later.alerts_created == 0
        alerts = alerts_for(watch.id, limit=2000)
        assert len(alerts) == 1100
        assert all(a.is_active and a.repost_count == 0 and a.seen_count == 3 for a in alerts)

    def test_stale_marking_only_counts_newly_stale(self, pipeline, create_watch, adapter_factory):
        """An alert already stale is not re-marked on later empty runs."""
        create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM")]
        pipeline.run_once(quiet())

        adapter_factory.boards["acme"] = []
        assert pipeline.run_once(quiet()).alerts_staled == 1
        assert pipeline.run_once(quiet()).alerts_staled == 0

    def test_updated_at_advance_is_repost(self, pipeline, create_watch, adapter_factory, clock):
        """A newer provider updated_at re-notifies the existing alert."""
        watch = create_watch(source_id="acme")
        stamp = clock.current
        adapter_factory.boards["acme"] = [make_posting("1", "PM", updated_at=stamp)]
        pipeline.run_once()

        adapter_factory.boards["acme"] = [make_posting("1", "PM", updated_at=stamp)]
        unchanged = pipeline.run_once()
        assert unchanged.alerts_reposted == 0

        adapter_factory.boards["acme"] = [
            make_posting("1", "PM", updated_at=stamp + timedelta(days=1))
        ]
        advanced = pipeline.run_once()

        (alert,) = alerts_for(watch.id)
        assert advanced.alerts_reposted == 1
        assert advanced.alerts_created == 1
        assert advanced.alerts_notified == 1
        assert alert.repost_count == 1
        assert alert.source_updated_at == stamp + timedelta(days=1)

    def test_missing_timestamps_keep_stored_values(self, pipeline, create_watch, adapter_factory, clock):
        """posted_at and source_updated_at are not erased by a sighting without them."""
        watch = create_watch(source_type="lever", source_id="acme")
        stamp = clock.current
        adapter_factory.boards["acme"] = [
            make_posting("1", "PM", posted_at=stamp, updated_at=stamp)
        ]
        pipeline.run_once(quiet())

        adapter_factory.boards["acme"] = [make_posting("1", "PM Renamed")]
        summary = pipeline.run_once(quiet())

        (alert,) = alerts_for(watch.id)
        assert summary.alerts_reposted == 0
        assert alert.title == "PM Renamed"
        assert alert.posted_at == stamp
        assert alert.source_updated_at == stamp

    def test_alerts_are_scoped_per_watch(self, pipeline, create_watch, adapter_factory):
        """The same external id on two watches yields two alerts."""
        first = create_watch(company="A", source_id="shared")
        second = create_watch(company="B", source_id="shared")
        adapter_factory.boards["shared"] = [make_posting("1", "PM")]

        summary = pipeline.run_once(quiet())

        assert summary.alerts_created == 2
        assert len(alerts_for(first.id)) == 1
        assert len(alerts_for(second.id)) == 1

    def test_last_checked_at_set_without_bumping_updated_at(self, pipeline, create_watch, adapter_factory):
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = []

        pipeline.run_once(quiet())

        with get_session() as session:
            stored = WatchRepository(session).get(watch.id)
        assert stored.last_checked_at is not None
        assert stored.updated_at == watch.updated_at


class TestMatchGate:
    """Keyword gating inside the pipeline."""

    def test_location_mismatch_is_not_stored(self, pipeline, create_watch, adapter_factory):
        watch = create_watch(source_id="acme", location_keywords=["remote"])
        adapter_factory.boards["acme"] = [
            make_posting("1", "PM", location="Remote - US"),
            make_posting("2", "PM", location="London"),
        ]

        summary = pipeline.run_once(quiet())

        assert summary.postings_fetched == 2
        assert summary.matches_found == 1
        assert [a.external_id for a in alerts_for(watch.id)] == ["1"]

    def test_hidden_posting_is_stored_but_not_notified(self, pipeline, create_watch, adapter_factory, notifier):
        """Title keywords only hide; the alert exists but nothing is sent."""
        watch = create_watch(source_id="acme", title_keywords=["product"])
        adapter_factory.boards["acme"] = [
            make_posting("1", "Product Manager"),
            make_posting("2", "Accountant"),
        ]

        summary = pipeline.run_once()

        alerts = alerts_for(watch.id)
        assert summary.alerts_created == 2
        assert summary.alerts_notified == 1
        assert notifier.send_alert.call_count == 1
        assert alerts[0].matched_keywords == ["title:product"]
        assert alerts[0].status == AlertStatus.NOTIFIED
        assert alerts[1].matched_keywords == []
        assert alerts[1].status == AlertStatus.NEW

    def test_stale_marking_ignores_unmatched_postings(self, pipeline, create_watch, adapter_factory):
        """A posting that no longer passes the location gate goes stale."""
        watch = create_watch(source_id="acme", location_keywords=["remote"])
        adapter_factory.boards["acme"] = [make_posting("1", "PM", location="Remote")]
        pipeline.run_once(quiet())

        adapter_factory.boards["acme"] = [make_posting("1", "PM", location="Berlin")]
        summary = pipeline.run_once(quiet())

        (alert,) = alerts_for(watch.id)
        assert summary.alerts_staled == 1
        assert alert.is_active is False


class TestNotifications:
    """Primary webhook delivery and the email digest fallback."""

    def test_successful_webhook_marks_notified(self, pipeline, create_watch, adapter_factory, notifier):
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM", location="Remote")]

        summary = pipeline.run_once()

        (alert,) = alerts_for(watch.id)
        assert summary.alerts_notified == 1
        assert alert.status == AlertStatus.NOTIFIED
        assert alert.channel == NotificationChannel.WEBHOOK
        assert alert.notified_at is not None
        notifier.send_digest.assert_not_called()

        message = notifier.send_alert.call_args.args[0]
        assert message.company == "Acme"
        assert message.title == "PM"
        assert message.location == "Remote"
        assert message.source_type == "greenhouse"

    def test_notify_disabled_records_without_sending(self, pipeline, create_watch, adapter_factory, notifier):
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM")]

        summary = pipeline.run_once(quiet())

        assert summary.alerts_created == 1
        assert summary.alerts_notified == 0
        notifier.send_alert.assert_not_called()
        notifier.send_digest.assert_not_called()
        assert alerts_for(watch.id)[0].status == AlertStatus.NEW

    def test_webhook_failure_falls_back_to_digest(self, pipeline, create_watch, adapter_factory, notifier):
        """Failed webhook -> status failed -> digest succeeds -> notified via email."""
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM"), make_posting("2", "Designer")]
        notifier.send_alert.return_value = NotificationResult(
            channel=NotificationChannel.WEBHOOK, status="failed", error="webhook delivery failed (500)"
        )

        statuses_at_digest = []

        def capture_digest(messages):
            statuses_at_digest.extend(a.status for a in alerts_for(watch.id))
            return NotificationResult(channel=NotificationChannel.EMAIL, status="sent")

        notifier.send_digest.side_effect = capture_digest

        summary = pipeline.run_once()

        assert statuses_at_digest == [AlertStatus.FAILED, AlertStatus.FAILED]
        notifier.send_digest.assert_called_once()
        assert [m.title for m in notifier.send_digest.call_args.args[0]] == ["PM", "Designer"]
        assert summary.alerts_notified == 2
        assert summary.errors == []
        for alert in alerts_for(watch.id):
            assert alert.status == AlertStatus.NOTIFIED
            assert alert.channel == NotificationChannel.EMAIL

    def test_digest_batches_failures_across_watches(self, pipeline, create_watch, adapter_factory, notifier):
        create_watch(company="A", source_id="a")
        create_watch(company="B", source_id="b")
        adapter_factory.boards["a"] = [make_posting("1", "PM")]
        adapter_factory.boards["b"] = [make_posting("2", "PM")]
        notifier.send_alert.return_value = NotificationResult(
            channel=NotificationChannel.WEBHOOK, status="failed", error="down"
        )

        pipeline.run_once()

        notifier.send_digest.assert_called_once()
        assert len(notifier.send_digest.call_args.args[0]) == 2

    def test_digest_failure_is_reported(self, pipeline, create_watch, adapter_factory, notifier):
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM")]
        notifier.send_alert.return_value = NotificationResult(
            channel=NotificationChannel.WEBHOOK, status="failed", error="down"
        )
        notifier.send_digest.return_value = NotificationResult(
            channel=NotificationChannel.EMAIL, status="failed", error="email delivery failed (401)"
        )

        summary = pipeline.run_once()

        assert summary.errors == ["email delivery failed (401)"]
        assert summary.alerts_notified == 0
        assert alerts_for(watch.id)[0].status == AlertStatus.FAILED

    def test_failed_alert_is_not_retried_on_next_run(self, pipeline, create_watch, adapter_factory, notifier):
        """Only first sightings and reposts are notifiable."""
        create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM")]
        notifier.send_alert.return_value = NotificationResult(
            channel=NotificationChannel.WEBHOOK, status="failed", error="down"
        )
        notifier.send_digest.return_value = NotificationResult(
            channel=NotificationChannel.EMAIL, status="failed", error="down"
        )
        pipeline.run_once()

        pipeline.run_once()

        assert notifier.send_alert.call_count == 1
        assert notifier.send_digest.call_count == 1


class TestErrorHandling:
    """Failures stay scoped to the watch that caused them."""

    def test_fetch_error_is_isolated(self, pipeline, create_watch, adapter_factory):
        healthy = create_watch(company="Healthy", source_id="healthy")
        broken = create_watch(company="Broken", source_id="broken")
        adapter_factory.boards["healthy"] = [make_posting("1", "PM")]
        adapter_factory.boards["broken"] = SourceHTTPError(
            "Greenhouse fetch failed (500)", status_code=500, url="https://example.test"
        )

        summary = pipeline.run_once(quiet())

        assert summary.errors == ["Broken: Greenhouse fetch failed (500)"]
        assert summary.had_errors
        assert summary.watches_checked == 2
        assert summary.alerts_created == 1
        assert len(alerts_for(healthy.id)) == 1

        with get_session() as session:
            assert WatchRepository(session).get(broken.id).last_checked_at is None

    def test_fetch_error_does_not_mark_alerts_stale(self, pipeline, create_watch, adapter_factory):
        watch = create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM")]
        pipeline.run_once(quiet())

        adapter_factory.boards["acme"] = SourceTimeoutError(
            "Greenhouse fetch timed out after 1.5s", url="https://example.test", timeout=1.5
        )
        summary = pipeline.run_once(quiet())

        assert summary.alerts_staled == 0
        assert alerts_for(watch.id)[0].is_active is True

    def test_persistence_error_propagates_and_releases_lock(self, pipeline, create_watch, adapter_factory):
        create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM")]

        with patch.object(AlertRepository, "create", side_effect=PersistenceError("disk full")):
            with pytest.raises(PersistenceError):
                pipeline.run_once(quiet())

        assert alerts_for_all_count() == 0
        assert pipeline.run_once(quiet()).skipped is False


def alerts_for_all_count():
    with get_session() as session:
        return len(AlertRepository(session).list_recent(200))


class TestRunControl:
    """Run budget, watch limits and the skip guard."""

    def test_timeout_stops_before_next_watch(self, app_config, notifier, adapter_factory, clock, create_watch):
        create_watch(company="Old", source_id="old")
        create_watch(company="New", source_id="new")
        adapter_factory.boards["new"] = [make_posting("1", "PM")]
        adapter_factory.boards["old"] = [make_posting("2", "PM")]

        # start, check before 1st watch, check before 2nd watch
        pipeline = AlertCheckPipeline(
            app_config,
            notifier,
            adapter_factory=adapter_factory,
            clock=TickingMonotonic(0.0, 0.0, 31.0),
            now=clock,
        )
        summary = pipeline.run_once(CheckOptions(notify=False, max_runtime_ms=30000))

        assert summary.timed_out is True
        assert summary.errors == [TIMEOUT_ERROR]
        assert summary.watches_checked == 1
        assert adapter_factory.fetched == ["new"]

    def test_watches_run_most_recently_updated_first(self, pipeline, create_watch, adapter_factory):
        create_watch(source_id="first-created")
        create_watch(source_id="second-created")

        pipeline.run_once(quiet())

        assert adapter_factory.fetched == ["second-created", "first-created"]

    def test_max_watches_limits_the_run(self, pipeline, create_watch, adapter_factory):
        create_watch(source_id="a")
        create_watch(source_id="b")
        create_watch(source_id="c")

        summary = pipeline.run_once(CheckOptions(notify=False, max_watches=2))

        assert summary.watches_checked == 2
        assert adapter_factory.fetched == ["c", "b"]

    def test_inactive_watches_are_skipped(self, pipeline, create_watch, adapter_factory):
        create_watch(source_id="on")
        create_watch(source_id="off", active=False)

        summary = pipeline.run_once(quiet())

        assert summary.watches_checked == 1
        assert adapter_factory.fetched == ["on"]

    def test_source_timeout_is_passed_to_adapter(self, pipeline, create_watch, adapter_factory):
        create_watch(source_id="acme")

        pipeline.run_once(CheckOptions(notify=False, source_timeout_ms=1500))

        assert adapter_factory.calls[0]["timeout"] == 1.5

    def test_run_skipped_while_another_is_in_progress(self, pipeline, create_watch, adapter_factory):
        create_watch(source_id="acme")

        pipeline._lock.acquire()
        try:
            summary = pipeline.run_once(quiet())
        finally:
            pipeline._lock.release()

        assert summary.skipped is True
        assert summary.watches_checked == 0
        assert adapter_factory.fetched == []

    def test_no_watches_is_a_clean_run(self, pipeline):
        summary = pipeline.run_once(quiet())

        assert summary.watches_checked == 0
        assert summary.errors == []
        assert summary.finished_at is not None

    def test_default_options_come_from_config(self, pipeline, app_config):
        options = pipeline.default_options()

        assert options.notify is app_config.check.notify
        assert options.max_runtime_ms == 30000


class TestSummaryShape:
    def test_to_dict_uses_camel_case_keys(self, pipeline, create_watch, adapter_factory):
        create_watch(source_id="acme")
        adapter_factory.boards["acme"] = [make_posting("1", "PM")]

        payload = pipeline.run_once(quiet()).to_dict()

        assert payload["watchesChecked"] == 1
        assert payload["jobsFetched"] == 1
        assert payload["matchesFound"] == 1
        assert payload["alertsCreated"] == 1
        assert payload["alertsNotified"] == 0
        assert payload["timedOut"] is False
        assert payload["errors"] == []
        assert payload["startedAt"].endswith("Z")


class TestCheckOptions:
    @pytest.mark.parametrize(
        "kwargs",
        [{"max_runtime_ms": 0}, {"max_watches": -1}, {"source_timeout_ms": 0}],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            CheckOptions(**kwargs)


class TestIsRepost:
    def test_rules(self, clock):
        from job_watch.domain.models import Alert

        now = clock.current
        base = dict(
            id="a",
            watch_id="w",
            external_id="1",
            company="Acme",
            title="PM",
            url="https://example.test/1",
            first_seen_at=now,
            last_seen_at=now,
            created_at=now,
        )
        active_with_stamp = Alert(**base, source_updated_at=now)
        active_without_stamp = Alert(**base)
        stale = Alert(**base, source_updated_at=now, is_active=False)

        assert is_repost(active_with_stamp, make_posting("1", "PM", updated_at=now)) is False
        assert is_repost(active_with_stamp, make_posting("1", "PM")) is False
        assert is_repost(
            active_with_stamp, make_posting("1", "PM", updated_at=now + timedelta(seconds=1))
        ) is True
        assert is_repost(active_without_stamp, make_posting("1", "PM", updated_at=now)) is True
        assert is_repost(stale, make_posting("1", "PM")) is True
