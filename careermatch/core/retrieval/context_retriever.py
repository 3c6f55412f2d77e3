"""
Single-query context retrieval.

Answers one free-form question (or a job's title) with the most relevant
stories, previously answered questions and reference documents. Falls
back to the most recent content when semantic search is unavailable.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Sequence

from careermatch.core.retrieval.formatting import format_retrieved_context
from careermatch.data.content_store import ContentStore
from careermatch.data.models import ContextDocument, QAEntry, SavedStory
from careermatch.ml.embeddings.search import SemanticSearch
from careermatch.ml.embeddings.vector_index import SearchResult
from careermatch.utils.config import RetrievalSettings, get_settings
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class QAContext:
    """An answered question with the job it was asked for."""

    qa: QAEntry
    job_title: str
    company: str


@dataclass
class RetrievedContext:
    stories: list[SavedStory] = field(default_factory=list)
    qa_entries: list[QAContext] = field(default_factory=list)
    documents: list[ContextDocument] = field(default_factory=list)
    used_semantic_search: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.stories or self.qa_entries or self.documents)


class ContextRetriever:
    """Retrieves stories, Q&A history and documents for a single query."""

    def __init__(
        self,
        search: SemanticSearch,
        store: ContentStore,
        settings: Optional[RetrievalSettings] = None,
    ):
        self.search = search
        self.store = store
        self.settings = settings or get_settings().retrieval

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def _resolve_stories(self, results: Sequence[SearchResult]) -> list[SavedStory]:
        stories = []
        for result in results:
            story = self.store.get_story(result.entity_id)
            if story is not None:
                stories.append(story)
        return stories

    def _resolve_documents(self, results: Sequence[SearchResult]) -> list[ContextDocument]:
        documents = []
        for result in results:
            document = self.store.get_document(result.entity_id)
            if document is not None:
                documents.append(document)
        return documents

    def _resolve_qa(self, results: Sequence[SearchResult]) -> list[QAContext]:
        entries = []
        for result in results:
            job_id = result.record.parent_job_id
            job = self.store.get_job(job_id) if job_id else None
            if job is None:
                continue
            qa = next((q for q in job.qa_history if q.id == result.entity_id), None)
            if qa is not None:
                entries.append(QAContext(qa=qa, job_title=job.title, company=job.company))
        return entries

    # -------------------------------------------------------------------------
    # Fallback
    # -------------------------------------------------------------------------

    def recent_context(
        self, max_stories: int, max_qa: int, max_documents: int
    ) -> RetrievedContext:
        """Newest stories, answered questions and documents."""
        stories = sorted(self.store.list_stories(), key=lambda s: s.created_at, reverse=True)
        documents = sorted(
            self.store.list_documents(), key=lambda d: d.created_at, reverse=True
        )

        answered = [
            QAContext(qa=qa, job_title=job.title, company=job.company)
            for job in self.store.list_jobs()
            for qa in job.qa_history
            if qa.answer
        ]
        answered.sort(key=lambda e: e.qa.created_at, reverse=True)

        return RetrievedContext(
            stories=stories[:max_stories],
            qa_entries=answered[:max_qa],
            documents=documents[:max_documents],
            used_semantic_search=False,
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def retrieve(
        self,
        query: str,
        max_stories: Optional[int] = None,
        max_qa: Optional[int] = None,
        max_documents: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> RetrievedContext:
        """
        Retrieve context relevant to a query.

        The three searches run concurrently. If the model is not ready, or
        any search fails, the most recent content is returned instead.

        Args:
            query: The user's question or prompt.
            max_stories: Story cap. Defaults to config setting.
            max_qa: Q&A cap. Defaults to config setting.
            max_documents: Document cap. Defaults to config setting.
            threshold: Similarity cutoff. Defaults to config setting.
        """
        settings = self.settings
        max_stories = settings.context_max_stories if max_stories is None else max_stories
        max_qa = settings.context_max_qa if max_qa is None else max_qa
        max_documents = (
            settings.context_max_documents if max_documents is None else max_documents
        )
        threshold = settings.threshold if threshold is None else threshold

        if not self.search.embedder.is_ready:
            logger.debug("Embedding model not ready, using recent context")
            return self.recent_context(max_stories, max_qa, max_documents)

        try:
            story_results, qa_results, document_results = await asyncio.gather(
                self.search.search_stories(query, limit=max_stories, threshold=threshold),
                self.search.search_qa_history(query, limit=max_qa, threshold=threshold),
                self.search.search_documents(query, limit=max_documents, threshold=threshold),
            )
        except Exception as e:
            logger.warning(f"Semantic search failed, using recent context: {e}")
            return self.recent_context(max_stories, max_qa, max_documents)

        return RetrievedContext(
            stories=self._resolve_stories(story_results),
            qa_entries=self._resolve_qa(qa_results),
            documents=self._resolve_documents(document_results),
            used_semantic_search=True,
        )

    async def retrieve_for_job(
        self, job_id: str, query: Optional[str] = None, **options
    ) -> RetrievedContext:
        """
        Retrieve context for a job, using "{title} at {company}" when no
        query is given. An unknown job yields empty context.
        """
        job = self.store.get_job(job_id)
        if job is None:
            return RetrievedContext()
        return await self.retrieve(query or f"{job.title} at {job.company}", **options)

    async def build_context(self, query: str, **options) -> str:
        """Retrieve and format context for a prompt; empty when nothing is relevant."""
        return format_retrieved_context(await self.retrieve(query, **options))
