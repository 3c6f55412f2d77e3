"""
Shared test fixtures for the careermatch test suite.

Sets environment variables before any careermatch imports so settings
load in testing mode without a log file, then provides deterministic
stand-ins for the sentence-transformers model and factory fixtures for
content models.
"""

import os

# === Set environment BEFORE any careermatch imports ===
os.environ.setdefault("APP_ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FILE_OUTPUT", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import asyncio
import hashlib
import re
from datetime import datetime, timedelta
from typing import Optional, Sequence

import numpy as np
import pytest

from careermatch.data.content_store import InMemoryContentStore
from careermatch.data.models import (
    ContextDocument,
    Job,
    JobSummary,
    Note,
    QAEntry,
    ResumeAnalysis,
    SavedStory,
)
from careermatch.ml.embeddings import (
    BatchItemResult,
    EmbeddingProvider,
    EmbeddingResult,
    EmbeddingService,
    EmbedItem,
    VectorIndex,
    compute_text_hash,
)
from careermatch.utils.constants import EMBEDDING_DIMENSIONS, ProgressStage
from careermatch.utils.exceptions import EmbeddingError, InitializationError

TOKEN = re.compile(r"[a-z0-9+#]+")


# ---------------------------------------------------------------------------
# Deterministic embedding stand-ins
# ---------------------------------------------------------------------------


def hash_embed(text: str, dimension: int = EMBEDDING_DIMENSIONS) -> np.ndarray:
    """Bag-of-words vector: each token hashed into one bucket, L2-normalized."""
    vector = np.zeros(dimension, dtype=np.float32)
    for token in TOKEN.findall(text.lower()):
        bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % dimension
        vector[bucket] += 1.0
    norm = np.linalg.norm(vector)
    if norm > 0:
        vector /= norm
    return vector


class HashingEncoder:
    """Drop-in for EmbeddingModel that never downloads anything."""

    def __init__(
        self,
        dimension: int = EMBEDDING_DIMENSIONS,
        fail_load: bool = False,
        fail_on: Optional[str] = None,
    ):
        self.dimension = dimension
        self.fail_load = fail_load
        self.fail_on = fail_on
        self.load_calls = 0
        self.encode_calls = 0
        self.texts: list[str] = []
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self, on_progress=None) -> None:
        self.load_calls += 1
        if self.fail_load:
            raise RuntimeError("model files unavailable")
        for stage, percent in (
            (ProgressStage.DOWNLOAD, 0.0),
            (ProgressStage.LOAD, 50.0),
            (ProgressStage.READY, 100.0),
        ):
            if on_progress is not None:
                on_progress(stage, percent)
        self._loaded = True

    def encode(self, text: str) -> np.ndarray:
        if not self._loaded:
            self.load()
        self.encode_calls += 1
        self.texts.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError(f"cannot embed text containing {self.fail_on!r}")
        return hash_embed(text, self.dimension)


class CountingProvider(EmbeddingProvider):
    """
    In-process embedding provider for component tests.

    Counts calls, can fail on chosen call numbers or substrings, and
    tracks how many embeds are in flight at once.
    """

    def __init__(
        self,
        ready: bool = True,
        fail_on: Optional[str] = None,
        fail_on_calls: Sequence[int] = (),
        fail_all: bool = False,
    ):
        self.ready = ready
        self.fail_on = fail_on
        self.fail_on_calls = set(fail_on_calls)
        self.fail_all = fail_all
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    @property
    def is_ready(self) -> bool:
        return self.ready

    async def initialize(self, on_progress=None) -> None:
        if not self.ready:
            raise InitializationError("provider unavailable")

    async def embed(self, text: str) -> EmbeddingResult:
        self.calls.append(text)
        call_number = len(self.calls)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if (
                self.fail_all
                or call_number in self.fail_on_calls
                or (self.fail_on and self.fail_on in text)
            ):
                raise EmbeddingError(f"embed call {call_number} failed", code="EMBED_FAILED")
            return EmbeddingResult(vector=hash_embed(text), text_hash=compute_text_hash(text))
        finally:
            self.active -= 1

    async def embed_batch(self, items: Sequence[EmbedItem]) -> list[BatchItemResult]:
        results = []
        for item in items:
            try:
                result = await self.embed(item.text)
            except EmbeddingError as e:
                results.append(
                    BatchItemResult(item.entity_type, item.entity_id, error=str(e))
                )
                continue
            results.append(
                BatchItemResult(
                    item.entity_type,
                    item.entity_id,
                    vector=result.vector,
                    text_hash=result.text_hash,
                )
            )
        return results

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def hashing_encoder():
    return HashingEncoder()


@pytest.fixture
def embedding_service(hashing_encoder):
    service = EmbeddingService(model=hashing_encoder, join_timeout=2.0)
    yield service
    service.terminate()


@pytest.fixture
def provider():
    return CountingProvider()


@pytest.fixture
def vector_index():
    return VectorIndex(dimension=EMBEDDING_DIMENSIONS)


# ---------------------------------------------------------------------------
# Content factories
# ---------------------------------------------------------------------------

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def make_story():
    """Factory for SavedStory models; ``age_days`` sets created_at before BASE_TIME."""

    def _factory(
        question: str = "Tell me about a time you led a project",
        answer: str = "I led the rewrite of our billing service.",
        age_days: int = 0,
        **kwargs,
    ) -> SavedStory:
        return SavedStory(
            question=question,
            answer=answer,
            created_at=BASE_TIME - timedelta(days=age_days),
            **kwargs,
        )

    return _factory


@pytest.fixture
def make_document():
    def _factory(
        name: str = "Brag document",
        full_text: str = "Shipped the search relevance overhaul in Q3.",
        summary: Optional[str] = None,
        use_summary: bool = False,
        age_days: int = 0,
        **kwargs,
    ) -> ContextDocument:
        return ContextDocument(
            name=name,
            full_text=full_text,
            summary=summary,
            use_summary=use_summary,
            created_at=BASE_TIME - timedelta(days=age_days),
            **kwargs,
        )

    return _factory


@pytest.fixture
def make_job():
    def _factory(
        title: str = "Senior Backend Engineer",
        company: str = "Acme",
        jd_text: str = "We are hiring a backend engineer to build distributed systems.",
        summary: Optional[JobSummary] = None,
        resume_analysis: Optional[ResumeAnalysis] = None,
        qa_history: Optional[list[QAEntry]] = None,
        notes: Optional[list[Note]] = None,
        age_days: int = 0,
        **kwargs,
    ) -> Job:
        updated = BASE_TIME - timedelta(days=age_days)
        return Job(
            title=title,
            company=company,
            jd_text=jd_text,
            summary=summary,
            resume_analysis=resume_analysis,
            qa_history=qa_history or [],
            notes=notes or [],
            date_added=updated,
            last_updated=updated,
            **kwargs,
        )

    return _factory


@pytest.fixture
def sample_resume() -> str:
    return (
        "Senior backend engineer with 8 years of Go and distributed systems.\n"
        "Built event pipelines processing billions of messages per day."
    )


@pytest.fixture
def content_store(sample_resume):
    return InMemoryContentStore(
        resume_text=sample_resume,
        additional_context="Prefers remote roles in infrastructure teams.",
    )


@pytest.fixture
def make_encoder():
    """Factory for HashingEncoder instances with custom failure modes."""

    def _factory(**kwargs) -> HashingEncoder:
        return HashingEncoder(**kwargs)

    return _factory


@pytest.fixture
def make_provider():
    """Factory for CountingProvider instances with custom failure modes."""

    def _factory(**kwargs) -> CountingProvider:
        return CountingProvider(**kwargs)

    return _factory
