"""Inbox listing and decision recording.

Fit scores are computed on read from the alert's stored title and location
and its watch's current keywords, so editing a watch re-ranks its backlog.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from job_watch.domain.models import Alert, AlertStatus, UserDecision, Watch
from job_watch.logging import get_logger
from job_watch.matching.fit import evaluate_fit
from job_watch.matching.models import FitRecommendation, FitResult
from job_watch.persistence.database import get_session
from job_watch.persistence.repositories import AlertRepository
from job_watch.utils.timestamps import format_timestamp, utc_now

logger = get_logger(__name__, component="inbox")

INBOX_VIEWS = ("all", "new", "reposted", "stale", "applied", "skip", "strong", "maybe", "fit-skip")

MIN_LIMIT = 1
MAX_LIMIT = 200


@dataclass
class InboxEntry:
    """An alert with its watch and its fit evaluation."""

    alert: Alert
    watch: Watch
    fit: FitResult

    def to_dict(self) -> Dict[str, Any]:
        alert = self.alert
        return {
            "id": alert.id,
            "watchId": alert.watch_id,
            "externalId": alert.external_id,
            "company": alert.company,
            "title": alert.title,
            "url": alert.url,
            "location": alert.location,
            "postedAt": format_timestamp(alert.posted_at),
            "sourceUpdatedAt": format_timestamp(alert.source_updated_at),
            "matchedKeywords": list(alert.matched_keywords),
            "channel": alert.channel.value,
            "status": alert.status.value,
            "userDecision": alert.user_decision.value,
            "decisionNote": alert.decision_note,
            "decidedAt": format_timestamp(alert.decided_at),
            "firstSeenAt": format_timestamp(alert.first_seen_at),
            "lastSeenAt": format_timestamp(alert.last_seen_at),
            "seenCount": alert.seen_count,
            "isActive": alert.is_active,
            "staleAt": format_timestamp(alert.stale_at),
            "repostCount": alert.repost_count,
            "lastRepostedAt": format_timestamp(alert.last_reposted_at),
            "notifiedAt": format_timestamp(alert.notified_at),
            "createdAt": format_timestamp(alert.created_at),
            "fit": self.fit.to_dict(),
            "watch": {
                "id": self.watch.id,
                "company": self.watch.company,
                "sourceType": self.watch.source_type.value,
                "sourceId": self.watch.source_id,
            },
        }


@dataclass
class InboxCounts:
    """Counts over the loaded alerts, before view, hidden and query filters."""

    total: int = 0
    hidden: int = 0
    strong: int = 0
    maybe: int = 0
    fit_skip: int = 0
    reposted: int = 0
    active: int = 0
    stale: int = 0
    applied: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "hidden": self.hidden,
            "strong": self.strong,
            "maybe": self.maybe,
            "fitSkip": self.fit_skip,
            "reposted": self.reposted,
            "active": self.active,
            "stale": self.stale,
            "applied": self.applied,
            "skipped": self.skipped,
        }


@dataclass
class InboxListing:
    alerts: List[InboxEntry] = field(default_factory=list)
    counts: InboxCounts = field(default_factory=InboxCounts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alerts": [entry.to_dict() for entry in self.alerts],
            "counts": self.counts.to_dict(),
        }


_VIEW_FILTERS: Dict[str, Callable[[InboxEntry], bool]] = {
    "all": lambda e: True,
    "new": lambda e: e.alert.status != AlertStatus.NOTIFIED,
    "reposted": lambda e: e.alert.repost_count >= 1,
    "stale": lambda e: not e.alert.is_active,
    "applied": lambda e: e.alert.user_decision == UserDecision.APPLIED,
    "skip": lambda e: e.alert.user_decision == UserDecision.SKIP,
    "strong": lambda e: e.fit.recommendation == FitRecommendation.STRONG,
    "maybe": lambda e: e.fit.recommendation == FitRecommendation.MAYBE,
    "fit-skip": lambda e: e.fit.recommendation == FitRecommendation.SKIP,
}


def _count(entries: List[InboxEntry]) -> InboxCounts:
    counts = InboxCounts(total=len(entries))
    for entry in entries:
        alert, fit = entry.alert, entry.fit
        counts.hidden += fit.hidden_by_keyword
        counts.strong += fit.recommendation == FitRecommendation.STRONG
        counts.maybe += fit.recommendation == FitRecommendation.MAYBE
        counts.fit_skip += fit.recommendation == FitRecommendation.SKIP
        counts.reposted += alert.repost_count > 0
        counts.active += alert.is_active
        counts.stale += not alert.is_active
        counts.applied += alert.user_decision == UserDecision.APPLIED
        counts.skipped += alert.user_decision == UserDecision.SKIP
    return counts


def list_alerts(
    view: str = "all",
    include_hidden: bool = False,
    query: str = "",
    limit: int = 50,
) -> InboxListing:
    """
    Load recent alerts ranked by fit and filtered for review.

    Args:
        view: One of INBOX_VIEWS
        include_hidden: Include alerts whose title matched no title keyword
        query: Case-insensitive substring over company, title and location
        limit: Alerts loaded, clamped to 1..200

    Returns:
        InboxListing with the filtered entries and unfiltered counts

    Raises:
        ValueError: If view is unknown
    """
    if view not in _VIEW_FILTERS:
        raise ValueError(f"Unknown view '{view}'. Must be one of: {', '.join(INBOX_VIEWS)}")

    limit = min(max(limit or 50, MIN_LIMIT), MAX_LIMIT)
    needle = (query or "").strip().lower()

    with get_session() as session:
        rows = AlertRepository(session).list_recent(limit)

    entries = [
        InboxEntry(
            alert=alert,
            watch=watch,
            fit=evaluate_fit(
                alert.title, alert.location, watch.title_keywords, watch.location_keywords
            ),
        )
        for alert, watch in rows
    ]

    view_filter = _VIEW_FILTERS[view]
    filtered = []
    for entry in entries:
        if not include_hidden and entry.fit.hidden_by_keyword:
            continue
        if not view_filter(entry):
            continue
        if needle:
            haystack = f"{entry.alert.company} {entry.alert.title} {entry.alert.location}"
            if needle not in haystack.lower():
                continue
        filtered.append(entry)

    return InboxListing(alerts=filtered, counts=_count(entries))


def parse_decision(value: str) -> UserDecision:
    """Map CLI input to a decision; "none" and "" clear it.

    Raises:
        ValueError: For anything other than applied, skip, none or ""
    """
    normalized = (value or "").strip().lower()
    if normalized == "none":
        normalized = ""
    try:
        return UserDecision(normalized)
    except ValueError:
        raise ValueError(
            f"Invalid decision '{value}'. Must be one of: applied, skip, none"
        ) from None


def record_decision(
    alert_id: str, decision: str, note: str = "", now: Optional[datetime] = None
) -> Alert:
    """
    Store the user's decision on an alert.

    Raises:
        ValueError: If the decision is invalid
        RecordNotFoundError: If the alert does not exist
    """
    parsed = parse_decision(decision)
    with get_session() as session:
        alert = AlertRepository(session).set_decision(
            alert_id, parsed, (note or "").strip(), now or utc_now()
        )

    logger.info(
        f"Recorded decision '{parsed.value or 'none'}' for alert {alert_id}",
        extra={"event": "alert.decision.recorded", "alert_id": alert_id, "decision": parsed.value},
    )
    return alert
