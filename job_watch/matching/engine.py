"""Keyword match gate deciding whether a posting is ingested for a watch.

Location keywords are a hard filter; title keywords are a soft filter that
only hides the posting. All comparisons are case-insensitive substring
containment.
"""

from typing import Iterable, List

from job_watch.domain.models import NormalizedPosting

from .models import MatchResult


def normalize_text(value: str) -> str:
    return (value or "").lower().strip()


def normalize_keywords(keywords: Iterable[str]) -> List[str]:
    """Lower-case and strip keywords, dropping empty ones. Order is kept."""
    cleaned = []
    for keyword in keywords:
        normalized = normalize_text(keyword)
        if normalized:
            cleaned.append(normalized)
    return cleaned


def find_matches(text: str, keywords: Iterable[str]) -> List[str]:
    """Normalized keywords contained in text, in keyword order."""
    haystack = normalize_text(text)
    return [kw for kw in normalize_keywords(keywords) if kw in haystack]


def tag_keywords(title_matches: List[str], location_matches: List[str]) -> List[str]:
    return [f"title:{kw}" for kw in title_matches] + [
        f"location:{kw}" for kw in location_matches
    ]


def match_posting(
    posting: NormalizedPosting,
    title_keywords: Iterable[str],
    location_keywords: Iterable[str],
) -> MatchResult:
    """Evaluate the ingestion gate for one posting.

    Args:
        posting: Normalized posting from an adapter
        title_keywords: Watch title filters (soft)
        location_keywords: Watch location filters (hard)

    Returns:
        MatchResult; ``matched`` ignores the title entirely
    """
    title_keywords = normalize_keywords(title_keywords)
    location_keywords = normalize_keywords(location_keywords)

    title_matches = find_matches(posting.title, title_keywords)
    location_matches = find_matches(posting.location, location_keywords)

    hidden = bool(title_keywords) and not title_matches
    location_pass = not location_keywords or bool(location_matches)

    return MatchResult(
        matched=location_pass,
        hidden_by_keyword=hidden,
        matched_keywords=tag_keywords(title_matches, location_matches),
    )
