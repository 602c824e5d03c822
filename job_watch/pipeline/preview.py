"""Read-only preview of the match gate for a single watch."""

from typing import Callable, Optional

from job_watch.adapters.exceptions import SourceFetchError
from job_watch.adapters.factory import get_adapter
from job_watch.config.models import AppConfig
from job_watch.logging import get_logger
from job_watch.logging.context import log_context
from job_watch.matching.engine import match_posting
from job_watch.persistence.database import get_session
from job_watch.persistence.repositories import WatchRepository

from .models import PreviewResult, PreviewSample

logger = get_logger(__name__, component="pipeline")


def preview_watch(
    app_config: AppConfig,
    watch_id: Optional[str] = None,
    sample_size: int = 25,
    source_timeout_ms: int = 1500,
    adapter_factory: Callable = get_adapter,
) -> PreviewResult:
    """
    Fetch one watch's postings and report what the match gate would do.

    Nothing is written and nothing is sent.

    Args:
        app_config: Application configuration (advanced settings feed the adapter)
        watch_id: Watch to preview; defaults to the most recently updated active watch
        sample_size: Maximum postings evaluated
        source_timeout_ms: Request timeout for the source fetch
        adapter_factory: Returns an adapter for (source_type, advanced_config, timeout=)

    Returns:
        PreviewResult; empty when the watch is missing or inactive
    """
    if sample_size < 1:
        raise ValueError(f"sample_size must be at least 1, got: {sample_size}")

    with get_session() as session:
        repo = WatchRepository(session)
        if watch_id:
            watch = repo.get(watch_id)
        else:
            active = repo.list_active()
            watch = active[0] if active else None

    if watch is None or not watch.active:
        logger.info(
            "No active watch to preview",
            extra={"event": "preview.no_watch", "requested_watch_id": watch_id},
        )
        return PreviewResult()

    result = PreviewResult(watch=watch)

    with log_context(watch_id=watch.id, company=watch.company, preview=True):
        try:
            adapter = adapter_factory(
                watch.source_type,
                app_config.advanced,
                timeout=source_timeout_ms / 1000,
            )
            postings = adapter.fetch_postings(watch.source_id)
        except SourceFetchError as e:
            result.errors.append(f"{watch.company}: {e}")
            logger.warning(
                f"Preview fetch failed for {watch.company}: {e}",
                extra={"event": "preview.fetch.failed", "error_type": type(e).__name__},
            )
            return result

        for posting in postings[:sample_size]:
            match = match_posting(posting, watch.title_keywords, watch.location_keywords)
            result.postings_evaluated += 1
            if match.matched:
                result.matches_found += 1
                if match.hidden_by_keyword:
                    result.hidden_by_keyword += 1
            result.samples.append(
                PreviewSample(
                    title=posting.title,
                    location=posting.location,
                    matched=match.matched,
                    hidden_by_keyword=match.hidden_by_keyword,
                    matched_keywords=list(match.matched_keywords),
                )
            )

        logger.info(
            f"Preview evaluated {result.postings_evaluated} posting(s) for {watch.company}",
            extra={
                "event": "preview.completed",
                "evaluated": result.postings_evaluated,
                "matched": result.matches_found,
                "hidden": result.hidden_by_keyword,
            },
        )

    return result
