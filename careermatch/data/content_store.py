"""
Content store boundary.

The store supplies candidate text (resume, additional context, stories,
documents, jobs) to the core and calls back into it when that text
changes. Persistence is someone else's concern; the in-memory store is
used by the CLI and the tests.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from careermatch.data.models import ContextDocument, Job, SavedStory
from careermatch.utils.constants import EntityType
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

ProfileListener = Callable[[], None]
DeletionListener = Callable[[EntityType, str], None]


class ContentStore(ABC):
    """
    Abstract read access to the user's content plus change notification.

    Implementations must call ``_notify_profile_changed`` whenever the
    resume, additional context, stories or documents change, and
    ``_notify_deleted`` whenever an indexed entity is removed.
    """

    def __init__(self) -> None:
        self._profile_listeners: list[ProfileListener] = []
        self._deletion_listeners: list[DeletionListener] = []

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_resume_text(self) -> str:
        """Default resume text; empty when the user has none."""
        pass

    @abstractmethod
    def get_additional_context(self) -> str:
        """Free-form context the user wrote about themselves."""
        pass

    @abstractmethod
    def list_stories(self) -> list[SavedStory]:
        pass

    @abstractmethod
    def list_documents(self) -> list[ContextDocument]:
        pass

    @abstractmethod
    def list_jobs(self) -> list[Job]:
        pass

    def get_job(self, job_id: str) -> Optional[Job]:
        return next((j for j in self.list_jobs() if j.id == job_id), None)

    def get_story(self, story_id: str) -> Optional[SavedStory]:
        return next((s for s in self.list_stories() if s.id == story_id), None)

    def get_document(self, document_id: str) -> Optional[ContextDocument]:
        return next((d for d in self.list_documents() if d.id == document_id), None)

    # -------------------------------------------------------------------------
    # Change notification
    # -------------------------------------------------------------------------

    def add_profile_listener(self, listener: ProfileListener) -> None:
        """Register a callback fired when any profile input changes."""
        self._profile_listeners.append(listener)

    def add_deletion_listener(self, listener: DeletionListener) -> None:
        """Register a callback fired with ``(entity_type, entity_id)`` on delete."""
        self._deletion_listeners.append(listener)

    def _notify_profile_changed(self) -> None:
        for listener in list(self._profile_listeners):
            listener()

    def _notify_deleted(self, entity_type: EntityType, entity_id: str) -> None:
        for listener in list(self._deletion_listeners):
            listener(entity_type, entity_id)


class InMemoryContentStore(ContentStore):
    """Dictionary-backed content store."""

    def __init__(
        self,
        resume_text: str = "",
        additional_context: str = "",
    ) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._resume_text = resume_text
        self._additional_context = additional_context
        self._stories: dict[str, SavedStory] = {}
        self._documents: dict[str, ContextDocument] = {}
        self._jobs: dict[str, Job] = {}

    def get_resume_text(self) -> str:
        return self._resume_text

    def get_additional_context(self) -> str:
        return self._additional_context

    def list_stories(self) -> list[SavedStory]:
        with self._lock:
            return list(self._stories.values())

    def list_documents(self) -> list[ContextDocument]:
        with self._lock:
            return list(self._documents.values())

    def list_jobs(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def get_story(self, story_id: str) -> Optional[SavedStory]:
        return self._stories.get(story_id)

    def get_document(self, document_id: str) -> Optional[ContextDocument]:
        return self._documents.get(document_id)

    # -------------------------------------------------------------------------
    # Profile inputs
    # -------------------------------------------------------------------------

    def set_resume_text(self, text: str) -> None:
        self._resume_text = text
        self._notify_profile_changed()

    def set_additional_context(self, text: str) -> None:
        self._additional_context = text
        self._notify_profile_changed()

    def save_story(self, story: SavedStory) -> SavedStory:
        with self._lock:
            self._stories[story.id] = story
        logger.debug(f"Saved story {story.id}")
        self._notify_profile_changed()
        return story

    def delete_story(self, story_id: str) -> bool:
        with self._lock:
            removed = self._stories.pop(story_id, None) is not None
        if removed:
            self._notify_deleted(EntityType.STORY, story_id)
            self._notify_profile_changed()
        return removed

    def save_document(self, document: ContextDocument) -> ContextDocument:
        with self._lock:
            self._documents[document.id] = document
        logger.debug(f"Saved document {document.id}")
        self._notify_profile_changed()
        return document

    def delete_document(self, document_id: str) -> bool:
        with self._lock:
            removed = self._documents.pop(document_id, None) is not None
        if removed:
            self._notify_deleted(EntityType.DOCUMENT, document_id)
            self._notify_profile_changed()
        return removed

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def save_job(self, job: Job) -> Job:
        with self._lock:
            self._jobs[job.id] = job
        return job

    def delete_job(self, job_id: str) -> bool:
        with self._lock:
            removed = self._jobs.pop(job_id, None) is not None
        if removed:
            self._notify_deleted(EntityType.JOB, job_id)
        return removed


# Singleton instance
_content_store: Optional[InMemoryContentStore] = None


def get_content_store() -> InMemoryContentStore:
    """Get the process-wide content store singleton instance."""
    global _content_store
    if _content_store is None:
        _content_store = InMemoryContentStore()
    return _content_store
