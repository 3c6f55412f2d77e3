"""
Multi-query context retrieval.

Derives several targeted queries for a task, runs them concurrently
against the vector index, merges overlapping hits and selects the best
stories and documents for the prompt. When semantic search is not
available the most recent content is used instead.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Sequence

from careermatch.core.improvements import (
    ResumeImprovementExtractor,
    format_improvements_context,
)
from careermatch.core.retrieval.formatting import format_context
from careermatch.core.retrieval.queries import RetrievalQuery, TaskInputs, extract_queries
from careermatch.data.content_store import ContentStore
from careermatch.data.models import ContextDocument, SavedStory
from careermatch.ml.embeddings.provider import EmbeddingProvider
from careermatch.ml.embeddings.vector_index import (
    EmbeddingRecord,
    RecordKey,
    SearchResult,
    VectorIndex,
)
from careermatch.utils.config import RetrievalSettings, get_settings
from careermatch.utils.constants import (
    IMPROVEMENT_TASKS,
    RETRIEVABLE_ENTITY_TYPES,
    EntityType,
    TaskType,
)
from careermatch.utils.exceptions import RetrievalDegraded
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class DeduplicatedHit:
    """An entity matched by one or more queries."""

    record: EmbeddingRecord
    best_score: float
    source_tags: list[str] = field(default_factory=list)


@dataclass
class RetrievalResult:
    context_text: str
    selected_stories: list[SavedStory]
    selected_documents: list[ContextDocument]
    queries_used: list[RetrievalQuery]
    used_semantic_search: bool
    hits: list[DeduplicatedHit] = field(default_factory=list)


def merge_hits(
    results: Sequence[tuple[RetrievalQuery, Sequence[SearchResult]]]
) -> list[DeduplicatedHit]:
    """
    Merge per-query results into one hit per entity.

    Each hit keeps the best score seen for its entity and the tags of
    every query that found it, in first-seen order.

    Returns:
        Hits sorted by best score, descending; ties keep first-seen order.
    """
    merged: dict[RecordKey, DeduplicatedHit] = {}
    for query, search_results in results:
        for result in search_results:
            key = result.record.key
            hit = merged.get(key)
            if hit is None:
                merged[key] = DeduplicatedHit(
                    record=result.record,
                    best_score=result.score,
                    source_tags=[query.source_tag],
                )
                continue
            if query.source_tag not in hit.source_tags:
                hit.source_tags.append(query.source_tag)
            if result.score > hit.best_score:
                hit.record = result.record
                hit.best_score = result.score

    return sorted(merged.values(), key=lambda h: h.best_score, reverse=True)


class MultiQueryRetrievalEngine:
    """
    Selects supporting stories and documents for an AI task.

    Stories and documents are capped independently, so many strong
    story hits never crowd out documents. Retrieval never fails because
    of the embedding subsystem; it degrades to recency instead.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: VectorIndex,
        store: ContentStore,
        improvement_extractor: Optional[ResumeImprovementExtractor] = None,
        settings: Optional[RetrievalSettings] = None,
    ):
        self.embedder = embedder
        self.index = index
        self.store = store
        self.improvement_extractor = improvement_extractor or ResumeImprovementExtractor()
        self.settings = settings or get_settings().retrieval

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def _search(
        self, query: RetrievalQuery, threshold: float
    ) -> Optional[list[SearchResult]]:
        """Run one query; returns None if it failed."""
        try:
            embedded = await self.embedder.embed(query.text)
            return self.index.query(
                embedded.vector,
                limit=self.settings.limit_per_query,
                threshold=threshold,
                entity_types=RETRIEVABLE_ENTITY_TYPES,
            )
        except Exception as e:
            logger.warning(f"Search failed for {query.source_tag} query {query.text[:60]!r}: {e}")
            return None

    async def search(
        self, queries: Sequence[RetrievalQuery], threshold: Optional[float] = None
    ) -> list[DeduplicatedHit]:
        """
        Run all queries concurrently and merge their hits.

        A failed query contributes no results.

        Raises:
            RetrievalDegraded: If semantic search is unavailable or every query failed.
        """
        if not self.embedder.is_ready:
            raise RetrievalDegraded("Embedding model is not ready")
        if not queries:
            raise RetrievalDegraded("No queries to search with")

        threshold = self.settings.threshold if threshold is None else threshold
        outcomes = await asyncio.gather(*(self._search(q, threshold) for q in queries))

        if all(outcome is None for outcome in outcomes):
            raise RetrievalDegraded(f"All {len(queries)} queries failed")

        return merge_hits(
            [(q, outcome) for q, outcome in zip(queries, outcomes) if outcome is not None]
        )

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select(
        self, hits: Sequence[DeduplicatedHit], max_stories: int, max_documents: int
    ) -> tuple[list[SavedStory], list[ContextDocument]]:
        """Fill story and document slots from ranked hits."""
        stories: list[SavedStory] = []
        documents: list[ContextDocument] = []
        for hit in hits:
            entity_type = EntityType(hit.record.entity_type)
            if entity_type == EntityType.STORY and len(stories) < max_stories:
                story = self.store.get_story(hit.record.entity_id)
                if story is not None:
                    stories.append(story)
            elif entity_type == EntityType.DOCUMENT and len(documents) < max_documents:
                document = self.store.get_document(hit.record.entity_id)
                if document is not None:
                    documents.append(document)
        return stories, documents

    def select_recent(
        self, max_stories: int, max_documents: int
    ) -> tuple[list[SavedStory], list[ContextDocument]]:
        """Newest stories and documents, capped the same way."""
        stories = sorted(self.store.list_stories(), key=lambda s: s.created_at, reverse=True)
        documents = sorted(
            self.store.list_documents(), key=lambda d: d.created_at, reverse=True
        )
        return stories[:max_stories], documents[:max_documents]

    def improvements_context(self, task: TaskType, inputs: TaskInputs) -> str:
        if TaskType(task) not in IMPROVEMENT_TASKS:
            return ""
        improvements = self.improvement_extractor.extract_improvements(
            inputs.job.id,
            self.store.list_jobs(),
            self.store.get_resume_text(),
        )
        return format_improvements_context(improvements)

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def retrieve(
        self,
        task: TaskType,
        inputs: TaskInputs,
        max_stories: Optional[int] = None,
        max_documents: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> RetrievalResult:
        """
        Gather context for a task.

        Args:
            task: Task requesting context.
            inputs: Job, resume analysis and user message for the task.
            max_stories: Story cap. Defaults to config setting.
            max_documents: Document cap. Defaults to config setting.
            threshold: Similarity cutoff. Defaults to config setting.

        Returns:
            Formatted context plus the selections and the queries used.
        """
        task = TaskType(task)
        max_stories = self.settings.max_stories if max_stories is None else max_stories
        max_documents = self.settings.max_documents if max_documents is None else max_documents

        queries = extract_queries(task, inputs, self.settings.fallback_query_chars)
        improvements = self.improvements_context(task, inputs)
        additional_context = self.store.get_additional_context()

        hits: list[DeduplicatedHit] = []
        try:
            hits = await self.search(queries, threshold)
            stories, documents = self.select(hits, max_stories, max_documents)
            used_semantic_search = True
        except RetrievalDegraded as e:
            logger.warning(f"Semantic retrieval unavailable, using recent content: {e}")
            stories, documents = self.select_recent(max_stories, max_documents)
            used_semantic_search = False

        logger.debug(
            f"Retrieved {len(stories)} stories and {len(documents)} documents "
            f"for {task.value} from {len(queries)} queries"
        )

        return RetrievalResult(
            context_text=format_context(
                task, stories, documents, additional_context, improvements
            ),
            selected_stories=stories,
            selected_documents=documents,
            queries_used=queries,
            used_semantic_search=used_semantic_search,
            hits=hits,
        )
