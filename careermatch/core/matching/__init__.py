"""Job-to-candidate match scoring module."""

from .match_scorer import (
    MatchResult,
    MatchScorer,
    ScoreOutcome,
    get_match_scorer,
    normalize_score,
    rank_results,
    score_to_grade,
)

__all__ = [
    "MatchResult",
    "MatchScorer",
    "ScoreOutcome",
    "get_match_scorer",
    "normalize_score",
    "rank_results",
    "score_to_grade",
]
