"""Keyword matching and fit scoring.

- match_posting: binary ingestion gate used by the check pipeline
- evaluate_fit: 0-100 ranking score used by the alert inbox
"""

from .engine import match_posting, normalize_keywords
from .fit import evaluate_fit, recommend
from .models import FitRecommendation, FitResult, MatchResult

__all__ = [
    "match_posting",
    "normalize_keywords",
    "evaluate_fit",
    "recommend",
    "MatchResult",
    "FitResult",
    "FitRecommendation",
]
