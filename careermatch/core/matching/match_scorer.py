"""
Job-to-candidate match scoring.

Scores a job description against the candidate profile vector with a
weighted blend of a requirements-only embedding and a full-text
embedding, then maps the raw similarity onto a readable 40-95 band and
a letter grade.
"""

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import numpy as np

from careermatch.core.profile import CandidateProfileManager
from careermatch.data.models import JobPosting
from careermatch.ml.embeddings.provider import EmbeddingProvider
from careermatch.ml.embeddings.vector_index import cosine_similarity
from careermatch.ml.nlp.sections import extract_requirements_section
from careermatch.utils.config import ScoringSettings, get_settings
from careermatch.utils.constants import FAILING_GRADE, GRADE_BREAKPOINTS, MatchStatus
from careermatch.utils.exceptions import ScoringError
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

# Called with (completed, total) after each job in a batch
ScoreProgressCallback = Callable[[int, int], None]


def normalize_score(similarity: float, settings: Optional[ScoringSettings] = None) -> int:
    """
    Map a cosine similarity onto the score band.

    Similarities in this embedding space cluster in a narrow range, so
    the configured similarity band is stretched linearly onto the score
    band and clamped at both ends.

    Args:
        similarity: Raw cosine similarity in [-1, 1].
        settings: Scoring settings. Defaults to config.

    Returns:
        Integer score between ``min_score`` and ``max_score`` inclusive.
    """
    s = settings or get_settings().scoring
    if similarity <= s.min_similarity:
        return s.min_score
    if similarity >= s.max_similarity:
        return s.max_score

    fraction = (similarity - s.min_similarity) / (s.max_similarity - s.min_similarity)
    score = math.floor(s.min_score + fraction * (s.max_score - s.min_score) + 0.5)
    return max(s.min_score, min(s.max_score, score))


def score_to_grade(score: float) -> str:
    """Letter grade for a score; A+ at 90 and above down to F below 40."""
    for minimum, grade in GRADE_BREAKPOINTS:
        if score >= minimum:
            return grade
    return FAILING_GRADE


@dataclass(frozen=True)
class ScoreOutcome:
    """Score of one job description plus how it was computed."""

    score: int
    used_requirements_split: bool
    similarity: float


@dataclass
class MatchResult:
    """Scoring result for one job posting."""

    posting: JobPosting
    score: Optional[int] = None
    grade: Optional[str] = None
    status: MatchStatus = MatchStatus.PENDING
    used_requirements_split: bool = False
    error: Optional[str] = None

    @property
    def job_id(self) -> str:
        return self.posting.job_id

    @property
    def is_scored(self) -> bool:
        return self.status == MatchStatus.COMPLETE and self.score is not None


def rank_results(results: Iterable[MatchResult]) -> list[MatchResult]:
    """Highest score first; unscored and errored results last, order kept."""
    return sorted(
        results,
        key=lambda r: (0, -r.score) if r.is_scored else (1, 0),
    )


class MatchScorer:
    """
    Scores job descriptions against the candidate profile.

    Batch scoring runs jobs one after another to bound load on the
    embedding worker; a failing job is marked as errored and does not
    stop the batch.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        profile_manager: Optional[CandidateProfileManager] = None,
        settings: Optional[ScoringSettings] = None,
    ):
        """
        Initialize the scorer.

        Args:
            embedder: Provider used to embed job text.
            profile_manager: Source of the profile vector for batch scoring.
            settings: Scoring settings. Defaults to config.
        """
        self.embedder = embedder
        self.profile_manager = profile_manager
        self.settings = settings or get_settings().scoring

    async def score(self, jd_text: str, profile_vector: np.ndarray) -> ScoreOutcome:
        """
        Score one job description.

        Args:
            jd_text: Job description text.
            profile_vector: Candidate profile vector.

        Returns:
            The normalized score and whether the requirements split was used.

        Raises:
            EmbeddingError: If the full job description could not be embedded.
        """
        full = await self.embedder.embed(jd_text)
        full_similarity = cosine_similarity(profile_vector, full.vector)

        requirements = extract_requirements_section(
            jd_text, min_length=self.settings.min_requirements_length
        )
        if requirements is None:
            return ScoreOutcome(
                score=normalize_score(full_similarity, self.settings),
                used_requirements_split=False,
                similarity=full_similarity,
            )

        try:
            req = await self.embedder.embed(requirements)
        except Exception as e:
            logger.warning(f"Failed to embed requirements section, using full text: {e}")
            return ScoreOutcome(
                score=normalize_score(full_similarity, self.settings),
                used_requirements_split=False,
                similarity=full_similarity,
            )

        req_similarity = cosine_similarity(profile_vector, req.vector)
        weight = self.settings.requirements_weight
        blended = weight * req_similarity + (1 - weight) * full_similarity
        return ScoreOutcome(
            score=normalize_score(blended, self.settings),
            used_requirements_split=True,
            similarity=blended,
        )

    async def score_posting(
        self, posting: JobPosting, profile_vector: np.ndarray
    ) -> MatchResult:
        """Score one posting; failures produce an errored result."""
        try:
            outcome = await self.score(posting.match_text, profile_vector)
        except Exception as e:
            error = ScoringError(f"Failed to score job {posting.job_id}: {e}", posting.job_id)
            logger.warning(str(error))
            return MatchResult(posting=posting, status=MatchStatus.ERROR, error=error.message)

        return MatchResult(
            posting=posting,
            score=outcome.score,
            grade=score_to_grade(outcome.score),
            status=MatchStatus.COMPLETE,
            used_requirements_split=outcome.used_requirements_split,
        )

    async def score_postings(
        self,
        postings: Iterable[JobPosting],
        profile_vector: Optional[np.ndarray] = None,
        on_progress: Optional[ScoreProgressCallback] = None,
    ) -> list[MatchResult]:
        """
        Score postings sequentially and rank them.

        Args:
            postings: Postings to score.
            profile_vector: Candidate profile vector. Defaults to the
                profile manager's current vector.
            on_progress: Called with (completed, total) after each posting.

        Returns:
            Results sorted by score, errored postings last.

        Raises:
            ProfileUnavailableError: If no profile vector was given and
                there is no resume to build one from.
        """
        postings = list(postings)
        if profile_vector is None:
            if self.profile_manager is None:
                raise ValueError("A profile vector or a profile manager is required")
            profile_vector = await self.profile_manager.get_profile_vector()

        results = []
        total = len(postings)
        for completed, posting in enumerate(postings, start=1):
            results.append(await self.score_posting(posting, profile_vector))
            if on_progress is not None:
                on_progress(completed, total)

        errors = sum(1 for r in results if r.status == MatchStatus.ERROR)
        logger.info(f"Scored {total - errors}/{total} job(s)")
        return rank_results(results)


# Singleton instance
_match_scorer: Optional[MatchScorer] = None


def get_match_scorer() -> MatchScorer:
    """
    Get the match scorer singleton instance.

    Its profile manager reads from and is invalidated by the shared
    content store, and publishes the profile vector to the shared index.
    """
    global _match_scorer
    if _match_scorer is None:
        from careermatch.data.content_store import get_content_store
        from careermatch.ml.embeddings import get_embedding_service, get_vector_index

        embedder = get_embedding_service()
        profile_manager = CandidateProfileManager(embedder, index=get_vector_index())
        profile_manager.attach(get_content_store())
        _match_scorer = MatchScorer(embedder, profile_manager)
    return _match_scorer
