"""Embedding provider boundary used by the rest of the core."""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from careermatch.ml.embeddings.messages import (
    BatchItemResult,
    EmbeddingResult,
    EmbedItem,
    ModelProgressResponse,
)

ProgressListener = Callable[[ModelProgressResponse], None]


class EmbeddingProvider(ABC):
    """
    Turns text into vectors.

    May be backed by a local model or a remote inference call; profile
    building, scoring and retrieval only depend on this contract.
    """

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """Whether initialization has completed successfully."""
        pass

    @abstractmethod
    async def initialize(self, on_progress: Optional[ProgressListener] = None) -> None:
        """Load the model. Idempotent and safe to call concurrently."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Embed one text."""
        pass

    @abstractmethod
    async def embed_batch(self, items: Sequence[EmbedItem]) -> list[BatchItemResult]:
        """Embed several texts; each item succeeds or fails on its own."""
        pass
