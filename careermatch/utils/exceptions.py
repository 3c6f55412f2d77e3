"""Error taxonomy for the matching and retrieval core."""

from typing import Optional


class CareerMatchError(Exception):
    """Base class for all careermatch errors."""


class InitializationError(CareerMatchError):
    """
    The embedding model or its worker failed to start.

    Terminal for the attempt that raised it; callers may retry.
    """


class EmbeddingError(CareerMatchError):
    """
    Embedding a single text failed.

    Attributes:
        message: Error description
        code: Worker error code (e.g. ``EMBED_FAILED``)
        request_id: Correlation id of the failed request
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.request_id = request_id
        super().__init__(message if not code else f"[{code}] {message}")


class ProfileUnavailableError(CareerMatchError):
    """No resume text is available, so no candidate profile can be built."""


class RetrievalDegraded(CareerMatchError):
    """
    Semantic search could not run.

    Never reaches callers of the retrieval engine: it selects the
    recency fallback and reports ``used_semantic_search=False``.
    """


class ScoringError(CareerMatchError):
    """Scoring one job posting failed; the posting is marked as errored."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        self.message = message
        self.job_id = job_id
        super().__init__(message)
