"""Alert review inbox: ranked listing and user decisions."""

from .service import (
    INBOX_VIEWS,
    InboxCounts,
    InboxEntry,
    InboxListing,
    list_alerts,
    parse_decision,
    record_decision,
)

__all__ = [
    "INBOX_VIEWS",
    "InboxCounts",
    "InboxEntry",
    "InboxListing",
    "list_alerts",
    "parse_decision",
    "record_decision",
]
