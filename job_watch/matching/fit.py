"""Fit scoring for ranking alerts in the review inbox.

Independent of the ingestion gate in engine.py: the gate decides what gets
stored, this decides how it is ranked and labelled.
"""

import re
from typing import Iterable, Optional

from .engine import find_matches, normalize_keywords, normalize_text, tag_keywords
from .models import FitRecommendation, FitResult

BASELINE_SCORE = 50
STRONG_THRESHOLD = 70
SKIP_THRESHOLD = 40

TITLE_MISS_PENALTY = 25
LOCATION_MATCH_BOOST = 15
LOCATION_MISS_PENALTY = 20
INTERN_PENALTY = 35
CONTRACT_PENALTY = 12

_INTERN_RE = re.compile(r"\b(intern|internship)\b")
_CONTRACT_RE = re.compile(r"\b(contract|temporary)\b")


def title_boost(match_count: int) -> int:
    """Boost for matched title keywords: 12 + 8 per match, capped at 35."""
    return min(35, 12 + match_count * 8)


def recommend(score: int) -> FitRecommendation:
    """Bucket a score: >= 70 strong, < 40 skip, otherwise maybe."""
    if score >= STRONG_THRESHOLD:
        return FitRecommendation.STRONG
    if score < SKIP_THRESHOLD:
        return FitRecommendation.SKIP
    return FitRecommendation.MAYBE


def evaluate_fit(
    title: str,
    location: Optional[str],
    title_keywords: Iterable[str],
    location_keywords: Iterable[str],
) -> FitResult:
    """Score a posting 0-100 against a watch's keywords.

    Example:
        >>> evaluate_fit("Software Engineering Intern", "", [], []).recommendation
        <FitRecommendation.SKIP: 'skip'>
    """
    normalized_title = normalize_text(title)
    title_keywords = normalize_keywords(title_keywords)
    location_keywords = normalize_keywords(location_keywords)

    title_matches = find_matches(normalized_title, title_keywords)
    location_matches = find_matches(location or "", location_keywords)

    score = BASELINE_SCORE
    reasons = []

    if title_keywords:
        if title_matches:
            score += title_boost(len(title_matches))
            reasons.append(f"Title matched {len(title_matches)} target keyword(s)")
        else:
            score -= TITLE_MISS_PENALTY
            reasons.append("No match against preferred title keywords")

    if location_keywords:
        if location_matches:
            score += LOCATION_MATCH_BOOST
            reasons.append("Location matched watch preferences")
        else:
            score -= LOCATION_MISS_PENALTY
            reasons.append("Location did not match preferred locations")

    if _INTERN_RE.search(normalized_title):
        score -= INTERN_PENALTY
        reasons.append("Internship role")
    if _CONTRACT_RE.search(normalized_title):
        score -= CONTRACT_PENALTY
        reasons.append("Contract/temporary signal")

    score = max(0, min(100, score))

    return FitResult(
        score=score,
        recommendation=recommend(score),
        hidden_by_keyword=bool(title_keywords) and not title_matches,
        matched_keywords=tag_keywords(title_matches, location_matches),
        reasons=reasons,
    )
