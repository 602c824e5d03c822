"""Data models for check runs and preview checks."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from job_watch.domain.models import Watch
from job_watch.notifications.models import AlertMessage
from job_watch.utils.timestamps import format_timestamp

TIMEOUT_ERROR = "Timed out before finishing all watches"


@dataclass
class CheckOptions:
    """
    Parameters of one check cycle.

    Attributes:
        notify: Dispatch notifications; when False alerts are still recorded
        max_runtime_ms: Wall-clock budget, checked before each watch
        max_watches: Only check this many watches (most recently updated first)
        source_timeout_ms: Per-request source timeout overriding the configured one
    """

    notify: bool = True
    max_runtime_ms: int = 30000
    max_watches: Optional[int] = None
    source_timeout_ms: Optional[int] = None

    def __post_init__(self):
        if self.max_runtime_ms <= 0:
            raise ValueError(f"max_runtime_ms must be positive, got: {self.max_runtime_ms}")
        if self.max_watches is not None and self.max_watches < 0:
            raise ValueError(f"max_watches cannot be negative, got: {self.max_watches}")
        if self.source_timeout_ms is not None and self.source_timeout_ms <= 0:
            raise ValueError(f"source_timeout_ms must be positive, got: {self.source_timeout_ms}")

    @property
    def source_timeout_seconds(self) -> Optional[float]:
        if self.source_timeout_ms is None:
            return None
        return self.source_timeout_ms / 1000


@dataclass
class WatchRunStats:
    """
    Counters for one watch within a check run.

    Attributes:
        watch_id: Watch that was checked
        company: Company name, used to prefix the error string
        fetched_count: Postings returned by the adapter
        matched_count: Postings that passed the match gate
        created_count: Alerts created for first sightings
        reposted_count: Existing alerts that were reposted
        notified_count: Alerts delivered through the webhook
        staled_count: Alerts marked stale after the fetch
        error: "<company>: <message>" when the fetch failed
    """

    watch_id: str
    company: str
    fetched_count: int = 0
    matched_count: int = 0
    created_count: int = 0
    reposted_count: int = 0
    notified_count: int = 0
    staled_count: int = 0
    error: Optional[str] = None


@dataclass
class QueuedAlert:
    """An alert the webhook failed to deliver, waiting for the email digest."""

    alert_id: str
    message: AlertMessage


@dataclass
class CheckSummary:
    """
    Aggregate result of one check cycle.

    The errors list is the single surface for partial failures: one entry per
    failed watch, plus the timeout and digest failures.

    alerts_created counts first sightings and reposts, since both raise a
    fresh alert; alerts_reposted breaks out the reposts. watches_checked
    counts only watches whose check started, so unlike a count of all active
    watches it excludes those left over when the runtime budget ran out.
    """

    started_at: datetime
    finished_at: Optional[datetime] = None
    watches_checked: int = 0
    postings_fetched: int = 0
    matches_found: int = 0
    alerts_created: int = 0
    alerts_notified: int = 0
    alerts_reposted: int = 0
    alerts_staled: int = 0
    timed_out: bool = False
    errors: List[str] = field(default_factory=list)
    skipped: bool = False
    watch_stats: List[WatchRunStats] = field(default_factory=list)

    def add(self, stats: WatchRunStats) -> None:
        """Fold one watch's counters into the summary."""
        self.watch_stats.append(stats)
        self.watches_checked += 1
        self.postings_fetched += stats.fetched_count
        self.matches_found += stats.matched_count
        self.alerts_created += stats.created_count + stats.reposted_count
        self.alerts_notified += stats.notified_count
        self.alerts_reposted += stats.reposted_count
        self.alerts_staled += stats.staled_count
        if stats.error:
            self.errors.append(stats.error)

    @property
    def had_errors(self) -> bool:
        return bool(self.errors)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "watchesChecked": self.watches_checked,
            "jobsFetched": self.postings_fetched,
            "matchesFound": self.matches_found,
            "alertsCreated": self.alerts_created,
            "alertsNotified": self.alerts_notified,
            "alertsReposted": self.alerts_reposted,
            "alertsStaled": self.alerts_staled,
            "timedOut": self.timed_out,
            "errors": list(self.errors),
            "skipped": self.skipped,
            "startedAt": format_timestamp(self.started_at),
            "finishedAt": format_timestamp(self.finished_at),
        }


@dataclass
class PreviewSample:
    """Match gate outcome for one sampled posting."""

    title: str
    location: str
    matched: bool
    hidden_by_keyword: bool
    matched_keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "location": self.location,
            "matched": self.matched,
            "hiddenByKeyword": self.hidden_by_keyword,
            "matchedKeywords": list(self.matched_keywords),
        }


@dataclass
class PreviewResult:
    """Read-only dry run of the match gate for a single watch."""

    watch: Optional[Watch] = None
    postings_evaluated: int = 0
    matches_found: int = 0
    hidden_by_keyword: int = 0
    samples: List[PreviewSample] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        sampled_watch = None
        if self.watch is not None:
            sampled_watch = {
                "id": self.watch.id,
                "company": self.watch.company,
                "sourceType": self.watch.source_type.value,
                "sourceId": self.watch.source_id,
            }
        return {
            "mode": "preview",
            "watchesChecked": 1 if self.watch is not None else 0,
            "sampledWatch": sampled_watch,
            "jobsFetched": self.postings_evaluated,
            "matchesFound": self.matches_found,
            "hiddenByKeyword": self.hidden_by_keyword,
            "samples": [sample.to_dict() for sample in self.samples],
            "errors": list(self.errors),
        }
