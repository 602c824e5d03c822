"""Check cycle orchestration: fetch, match, reconcile and notify."""

from .models import (
    TIMEOUT_ERROR,
    CheckOptions,
    CheckSummary,
    PreviewResult,
    PreviewSample,
    QueuedAlert,
    WatchRunStats,
)
from .preview import preview_watch
from .runner import AlertCheckPipeline, is_repost

__all__ = [
    "AlertCheckPipeline",
    "CheckOptions",
    "CheckSummary",
    "PreviewResult",
    "PreviewSample",
    "QueuedAlert",
    "TIMEOUT_ERROR",
    "WatchRunStats",
    "is_repost",
    "preview_watch",
]
