"""
Populates the vector index from the content store.

Knows how each kind of content is turned into embeddable text and skips
content whose hash has not changed since it was last embedded.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from careermatch.data.content_store import ContentStore
from careermatch.data.models import ContextDocument, Job, Note, QAEntry, SavedStory
from careermatch.ml.embeddings.embedding_model import compute_text_hash
from careermatch.ml.embeddings.messages import EmbedItem
from careermatch.ml.embeddings.provider import EmbeddingProvider
from careermatch.ml.embeddings.vector_index import EmbeddingRecord, VectorIndex
from careermatch.utils.constants import EntityType
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Text extraction
# =============================================================================


def extract_job_text(job: Job) -> str:
    parts = [f"{job.title} at {job.company}", job.jd_text]
    return "\n\n".join(p for p in parts if p)


def extract_story_text(story: SavedStory) -> str:
    return f"{story.question}\n\n{story.answer}"


def extract_qa_text(qa: QAEntry) -> str:
    return f"Q: {qa.question}\n\nA: {qa.answer or ''}"


def extract_note_text(note: Note) -> str:
    return note.content


def extract_document_text(document: ContextDocument) -> str:
    return f"{document.name}\n\n{document.content}"


def extract_cover_letter_text(cover_letter: str, job: Job) -> str:
    return f"Cover letter for {job.title} at {job.company}\n\n{cover_letter}"


@dataclass(frozen=True)
class IndexItem:
    """Text to embed for one entity."""

    entity_type: EntityType
    entity_id: str
    text: str
    parent_job_id: Optional[str] = None


def job_items(job: Job) -> list[IndexItem]:
    """The job itself plus its answered Q&A, notes and cover letter."""
    items = [IndexItem(EntityType.JOB, job.id, extract_job_text(job))]
    for qa in job.qa_history:
        if qa.answer:
            items.append(
                IndexItem(EntityType.QA, qa.id, extract_qa_text(qa), parent_job_id=job.id)
            )
    for note in job.notes:
        items.append(
            IndexItem(EntityType.NOTE, note.id, extract_note_text(note), parent_job_id=job.id)
        )
    if job.cover_letter:
        items.append(
            IndexItem(
                EntityType.COVER_LETTER,
                job.id,
                extract_cover_letter_text(job.cover_letter, job),
                parent_job_id=job.id,
            )
        )
    return items


@dataclass
class IndexingReport:
    """Outcome of a batch indexing run."""

    indexed: int = 0
    skipped: int = 0
    failed: list[tuple[EntityType, str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.indexed + self.skipped + len(self.failed)


# =============================================================================
# Indexer
# =============================================================================


class ContentIndexer:
    """Embeds content and keeps the vector index in sync with the store."""

    def __init__(self, embedder: EmbeddingProvider, index: VectorIndex):
        self.embedder = embedder
        self.index = index

    def _is_current(self, item: IndexItem) -> bool:
        stored = self.index.text_hash(item.entity_type, item.entity_id)
        return stored is not None and stored == compute_text_hash(item.text)

    async def index_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        text: str,
        parent_job_id: Optional[str] = None,
        force: bool = False,
    ) -> bool:
        """
        Embed one entity unless its content is unchanged.

        Returns:
            True if the entity was (re-)embedded, False if it was skipped.

        Raises:
            EmbeddingError: If embedding failed.
        """
        item = IndexItem(EntityType(entity_type), entity_id, text, parent_job_id)
        if not force and self._is_current(item):
            logger.debug(f"Skipping unchanged {item.entity_type.value}:{entity_id}")
            return False

        result = await self.embedder.embed(text)
        self.index.upsert(
            EmbeddingRecord(
                entity_type=item.entity_type,
                entity_id=entity_id,
                vector=result.vector,
                content_hash=result.text_hash,
                parent_job_id=parent_job_id,
            )
        )
        return True

    async def index_story(self, story: SavedStory, force: bool = False) -> bool:
        return await self.index_entity(
            EntityType.STORY, story.id, extract_story_text(story), force=force
        )

    async def index_document(self, document: ContextDocument, force: bool = False) -> bool:
        return await self.index_entity(
            EntityType.DOCUMENT, document.id, extract_document_text(document), force=force
        )

    async def index_job(self, job: Job, force: bool = False) -> IndexingReport:
        """Index a job together with the content attached to it."""
        return await self.index_items(job_items(job), force=force)

    async def index_items(
        self, items: Iterable[IndexItem], force: bool = False
    ) -> IndexingReport:
        """
        Embed a batch of items; failures are reported, not raised.

        Raises:
            InitializationError: If the embedding model could not be loaded.
        """
        report = IndexingReport()
        pending = []
        for item in items:
            if not force and self._is_current(item):
                report.skipped += 1
            else:
                pending.append(item)

        if not pending:
            return report

        results = await self.embedder.embed_batch(
            [EmbedItem(i.text, i.entity_type, i.entity_id) for i in pending]
        )

        records = []
        for item, result in zip(pending, results):
            if not result.ok:
                report.failed.append((item.entity_type, item.entity_id, result.error or ""))
                continue
            records.append(
                EmbeddingRecord(
                    entity_type=item.entity_type,
                    entity_id=item.entity_id,
                    vector=result.vector,
                    content_hash=result.text_hash,
                    parent_job_id=item.parent_job_id,
                )
            )
        self.index.upsert_many(records)
        report.indexed = len(records)

        if report.failed:
            logger.warning(f"{len(report.failed)} item(s) failed to embed")
        return report

    async def index_all(self, store: ContentStore, force: bool = False) -> IndexingReport:
        """Index every job, story and document in the store."""
        items: list[IndexItem] = []
        for job in store.list_jobs():
            items.extend(job_items(job))
        for story in store.list_stories():
            items.append(IndexItem(EntityType.STORY, story.id, extract_story_text(story)))
        for document in store.list_documents():
            items.append(
                IndexItem(EntityType.DOCUMENT, document.id, extract_document_text(document))
            )

        logger.info(f"Indexing {len(items)} item(s)")
        report = await self.index_items(items, force=force)
        logger.info(
            f"Indexing complete: {report.indexed} embedded, "
            f"{report.skipped} unchanged, {len(report.failed)} failed"
        )
        return report

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    def remove_entity(self, entity_type: EntityType, entity_id: str) -> None:
        entity_type = EntityType(entity_type)
        if entity_type == EntityType.JOB:
            self.remove_job(entity_id)
        else:
            self.index.remove(entity_type, entity_id)

    def remove_job(self, job_id: str) -> int:
        return self.index.remove_job(job_id)

    def attach(self, store: ContentStore) -> None:
        """Drop index records whenever the store deletes their entity."""
        store.add_deletion_listener(self.remove_entity)
