"""Guess a watch's source type and board slug from a careers page URL."""

import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlsplit

import requests

from job_watch.domain.models import SourceType
from job_watch.logging import get_logger

logger = get_logger(__name__, component="adapter")

HIGH = "high"
MEDIUM = "medium"

_HOSTED_PATTERNS = (
    (SourceType.ASHBY, re.compile(r"jobs\.ashbyhq\.com/([a-zA-Z0-9_-]+)"), "Found Ashby hosted job URL pattern"),
    (SourceType.GREENHOUSE, re.compile(r"boards\.greenhouse\.io/([a-zA-Z0-9_-]+)"), "Found Greenhouse board URL pattern"),
    (SourceType.LEVER, re.compile(r"jobs\.lever\.co/([a-zA-Z0-9_-]+)"), "Found Lever jobs URL pattern"),
)
_BOARD_PARAM = re.compile(r"[?&]board=([a-zA-Z0-9_-]+)")
_ASHBY_JID_PARAM = re.compile(r"[?&]ashby_jid=([a-zA-Z0-9-]+)")
_HOST_SLUG = re.compile(r"https?://(?:www\.)?([a-zA-Z0-9-]+)\.")


@dataclass(frozen=True)
class SourceDetection:
    """A candidate (source_type, source_id) pair found in a URL or page."""

    source_type: SourceType
    source_id: str
    confidence: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "sourceType": self.source_type.value,
            "sourceId": self.source_id,
            "confidence": self.confidence,
            "reason": self.reason,
        }


def _unique(detections: List[SourceDetection]) -> List[SourceDetection]:
    seen = set()
    unique = []
    for detection in detections:
        key = (detection.source_type, detection.source_id)
        if key not in seen:
            seen.add(key)
            unique.append(detection)
    return unique


def detect_in_text(text: str) -> List[SourceDetection]:
    """Scan a URL or HTML body for known job board patterns."""
    found: List[SourceDetection] = []

    for source_type, pattern, reason in _HOSTED_PATTERNS:
        for match in pattern.finditer(text):
            found.append(SourceDetection(source_type, match.group(1), HIGH, reason))

    for match in _BOARD_PARAM.finditer(text):
        found.append(
            SourceDetection(SourceType.GREENHOUSE, match.group(1), MEDIUM, "Found board query parameter")
        )

    if _ASHBY_JID_PARAM.search(text):
        host = _HOST_SLUG.search(text)
        if host:
            found.append(
                SourceDetection(
                    SourceType.ASHBY,
                    host.group(1),
                    MEDIUM,
                    "Found ashby_jid parameter and inferred slug from host",
                )
            )

    return _unique(found)


def _fetch_page(url: str, timeout: float, user_agent: str) -> Optional[str]:
    """Best-effort page fetch; any failure yields None."""
    try:
        response = requests.get(url, timeout=timeout, headers={"User-Agent": user_agent})
    except requests.exceptions.RequestException as e:
        logger.debug(
            "Career page fetch failed",
            extra={"event": "source.detect.page_failed", "url": url, "error": str(e)},
        )
        return None

    if not response.ok:
        logger.debug(
            "Career page returned an error status",
            extra={"event": "source.detect.page_failed", "url": url, "status_code": response.status_code},
        )
        return None
    return response.text


def detect_sources(
    url: str,
    fetch_page: bool = True,
    timeout: float = 10,
    user_agent: str = "JobWatch/1.0",
) -> List[SourceDetection]:
    """Detect job board sources referenced by a careers page.

    The URL itself is scanned first, then (optionally) the fetched page body.
    Results are de-duplicated and ordered high confidence first, keeping
    discovery order within each confidence level.

    Raises:
        ValueError: If the URL is not an absolute http(s) URL
    """
    url = (url or "").strip()
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Invalid URL: '{url}'")

    detections = detect_in_text(url)

    if fetch_page:
        body = _fetch_page(url, timeout, user_agent)
        if body:
            detections.extend(detect_in_text(body))

    detections = _unique(detections)
    detections.sort(key=lambda d: 0 if d.confidence == HIGH else 1)

    logger.info(
        f"Detected {len(detections)} candidate source(s)",
        extra={"event": "source.detect.completed", "url": url, "count": len(detections)},
    )
    return detections
