"""Result types for the match gate and the fit score."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


@dataclass
class MatchResult:
    """Outcome of the ingestion gate for one posting against one watch.

    Attributes:
        matched: False only when location keywords are configured and none matched
        hidden_by_keyword: Title keywords are configured and none matched; the
            posting is still ingested but kept out of default views and never notified
        matched_keywords: ``title:<kw>`` entries first, then ``location:<kw>``
    """

    matched: bool
    hidden_by_keyword: bool = False
    matched_keywords: List[str] = field(default_factory=list)

    @property
    def notifiable(self) -> bool:
        return self.matched and not self.hidden_by_keyword


class FitRecommendation(str, Enum):
    """Display bucket for a fit score."""

    STRONG = "strong"
    MAYBE = "maybe"
    SKIP = "skip"


@dataclass
class FitResult:
    """Ranking signal shown in the alert inbox.

    Attributes:
        score: 0-100, clamped
        recommendation: Bucket derived from score
        hidden_by_keyword: Same definition as MatchResult.hidden_by_keyword
        matched_keywords: Matched title keywords then location keywords
        reasons: Human-readable explanation of each adjustment
    """

    score: int
    recommendation: FitRecommendation
    hidden_by_keyword: bool = False
    matched_keywords: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "recommendation": self.recommendation.value,
            "hiddenByKeyword": self.hidden_by_keyword,
            "matchedKeywords": list(self.matched_keywords),
            "reasons": list(self.reasons),
        }
