"""
Embedding model wrapper for generating text embeddings.

Uses the sentence-transformers library to turn free text into
L2-normalized vectors. The model is owned by the embedding worker
thread; callers never touch it directly.
"""

import hashlib
from typing import Callable, Optional

import numpy as np

from careermatch.utils.config import get_settings
from careermatch.utils.constants import ProgressStage
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

# Called with (stage, percent) while the model initializes
ProgressCallback = Callable[[ProgressStage, float], None]


def truncate_text(
    text: str,
    max_tokens: Optional[int] = None,
    chars_per_token: Optional[int] = None,
) -> str:
    """
    Cut text down to the model's context budget.

    Token count is estimated from characters, so long inputs are
    shortened rather than rejected.

    Args:
        text: Text to truncate.
        max_tokens: Token budget. Defaults to config setting.
        chars_per_token: Estimated characters per token. Defaults to config setting.

    Returns:
        The text, or its prefix when it exceeds the budget.
    """
    settings = get_settings().embedding
    max_tokens = max_tokens or settings.max_tokens
    chars_per_token = chars_per_token or settings.chars_per_token
    limit = max_tokens * chars_per_token
    if len(text) <= limit:
        return text
    return text[:limit]


def compute_text_hash(text: str) -> str:
    """SHA-256 hex digest of the original, untruncated text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class EmbeddingModel:
    """
    Wrapper for sentence-transformers embedding models.

    Loading is lazy and happens once; ``load`` reports progress through
    an optional callback.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
    ):
        """
        Initialize the embedding model.

        Args:
            model_name: Name of the sentence-transformers model to use.
                       Defaults to config setting.
            device: Device to run model on ('cpu', 'cuda', 'mps').
                   Defaults to config setting.
        """
        settings = get_settings().embedding
        self.model_name = model_name or settings.model_name
        self.device = device or settings.device
        self.dimension = settings.dimension
        self.cache_folder = settings.cache_folder

        self._model = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def load(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Load the model if it is not loaded yet.

        Args:
            on_progress: Receives download/load/ready stage updates.
        """
        if self._model is not None:
            return

        def report(stage: ProgressStage, progress: float) -> None:
            if on_progress is not None:
                on_progress(stage, progress)

        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading embedding model: {self.model_name}")
        report(ProgressStage.DOWNLOAD, 0.0)

        cache_folder = str(self.cache_folder) if self.cache_folder else None
        model = SentenceTransformer(
            self.model_name,
            device=self.device,
            cache_folder=cache_folder,
        )
        report(ProgressStage.LOAD, 50.0)

        dimension = model.get_sentence_embedding_dimension()
        if dimension and dimension != self.dimension:
            logger.warning(
                f"Model {self.model_name} produces {dimension}-d vectors, "
                f"configured dimension is {self.dimension}"
            )
            self.dimension = dimension

        self._model = model
        report(ProgressStage.READY, 100.0)
        logger.info(f"Embedding model loaded on device: {self.device}")

    def encode(self, text: str) -> np.ndarray:
        """
        Generate the embedding of a single text.

        Args:
            text: Text to encode (already truncated by the caller).

        Returns:
            float32 L2-normalized vector of shape (dimension,).
        """
        if self._model is None:
            self.load()

        embedding = self._model.encode(
            [text],
            show_progress_bar=False,
            normalize_embeddings=True,
            convert_to_numpy=True,
        )[0]
        return np.asarray(embedding, dtype=np.float32)


# Singleton instance
_embedding_model: Optional[EmbeddingModel] = None


def get_embedding_model() -> EmbeddingModel:
    """Get the embedding model singleton instance."""
    global _embedding_model
    if _embedding_model is None:
        _embedding_model = EmbeddingModel()
    return _embedding_model
