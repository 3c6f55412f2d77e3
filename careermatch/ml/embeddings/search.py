"""
Text-query search over the vector index.

Embeds a natural language query and ranks indexed content against it,
optionally narrowed to some entity types or to the content of one job.
"""

from typing import Iterable, Optional

import numpy as np

from careermatch.ml.embeddings.provider import EmbeddingProvider
from careermatch.ml.embeddings.vector_index import SearchResult, VectorIndex
from careermatch.utils.constants import EntityType
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_THRESHOLD = 0.3


class SemanticSearch:
    """Semantic search across embedded stories, Q&A, notes, documents and jobs."""

    def __init__(self, embedder: EmbeddingProvider, index: VectorIndex):
        self.embedder = embedder
        self.index = index

    async def embed_query(self, query: str) -> np.ndarray:
        """
        Embed a query, loading the model first if needed.

        Raises:
            InitializationError: If the model could not be loaded.
            EmbeddingError: If the query could not be embedded.
        """
        result = await self.embedder.embed(query)
        return result.vector

    async def search(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
        entity_types: Optional[Iterable[EntityType]] = None,
        job_id: Optional[str] = None,
    ) -> list[SearchResult]:
        """
        Search all indexed content.

        Args:
            query: Natural language query.
            limit: Maximum number of results.
            threshold: Minimum cosine similarity.
            entity_types: Allow-list of entity types. None means all types.
            job_id: Only return content owned by this job.

        Returns:
            Matching records, most similar first.
        """
        vector = await self.embed_query(query)
        results = self.index.query(
            vector,
            limit=limit,
            threshold=threshold,
            entity_types=entity_types,
            parent_job_id=job_id,
        )
        logger.debug(f"Search {query[:60]!r} returned {len(results)} result(s)")
        return results

    async def search_stories(
        self, query: str, limit: int = 5, threshold: float = DEFAULT_THRESHOLD
    ) -> list[SearchResult]:
        """Saved stories relevant to a query (e.g. "leadership experience")."""
        return await self.search(
            query, limit=limit, threshold=threshold, entity_types=[EntityType.STORY]
        )

    async def search_qa_history(
        self, query: str, limit: int = 10, threshold: float = DEFAULT_THRESHOLD
    ) -> list[SearchResult]:
        """Answered questions from every job."""
        return await self.search(
            query, limit=limit, threshold=threshold, entity_types=[EntityType.QA]
        )

    async def search_documents(
        self, query: str, limit: int = 5, threshold: float = DEFAULT_THRESHOLD
    ) -> list[SearchResult]:
        return await self.search(
            query, limit=limit, threshold=threshold, entity_types=[EntityType.DOCUMENT]
        )

    async def search_within_job(
        self,
        query: str,
        job_id: str,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
        entity_types: Optional[Iterable[EntityType]] = None,
    ) -> list[SearchResult]:
        """Notes, Q&A and cover letter of one job."""
        return await self.search(
            query,
            limit=limit,
            threshold=threshold,
            entity_types=entity_types,
            job_id=job_id,
        )

    def find_similar_jobs(
        self, job_id: str, limit: int = 5, threshold: float = DEFAULT_THRESHOLD
    ) -> list[SearchResult]:
        """
        Jobs whose descriptions are closest to an indexed job.

        Needs no embedding call; returns an empty list when the job was
        never indexed.
        """
        return self.index.find_similar_to_entity(
            EntityType.JOB,
            job_id,
            limit=limit,
            threshold=threshold,
            entity_types=[EntityType.JOB],
        )


# Singleton instance
_semantic_search: Optional[SemanticSearch] = None


def get_semantic_search() -> SemanticSearch:
    """Get the semantic search singleton, bound to the shared service and index."""
    global _semantic_search
    if _semantic_search is None:
        from careermatch.ml.embeddings.service import get_embedding_service
        from careermatch.ml.embeddings.vector_index import get_vector_index

        _semantic_search = SemanticSearch(get_embedding_service(), get_vector_index())
    return _semantic_search
