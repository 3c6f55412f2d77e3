"""
Candidate profile manager.

Assembles one profile text from the user's resume, additional context,
saved stories and documents, embeds it, and caches the vector until the
profile changes.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from careermatch.data.content_store import ContentStore
from careermatch.data.models import ContextDocument, SavedStory
from careermatch.ml.embeddings.provider import EmbeddingProvider
from careermatch.ml.embeddings.vector_index import EmbeddingRecord, VectorIndex
from careermatch.utils.constants import SECTION_SEPARATOR, EntityType
from careermatch.utils.exceptions import ProfileUnavailableError
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

PROFILE_ENTITY_ID = "candidate"
HASH_AFFIX_CHARS = 50


@dataclass(frozen=True)
class ProfileInputs:
    """Everything the candidate profile is built from."""

    resume_text: str = ""
    additional_context: str = ""
    stories: Sequence[SavedStory] = ()
    documents: Sequence[ContextDocument] = ()

    @classmethod
    def from_store(cls, store: ContentStore) -> "ProfileInputs":
        return cls(
            resume_text=store.get_resume_text(),
            additional_context=store.get_additional_context(),
            stories=tuple(store.list_stories()),
            documents=tuple(store.list_documents()),
        )

    @property
    def has_resume(self) -> bool:
        return bool(self.resume_text and self.resume_text.strip())


def build_profile_text(inputs: ProfileInputs) -> str:
    """
    Concatenate profile inputs in a fixed order.

    Resume, additional context, stories (question and answer) and
    documents (summary when the document asks for it), with empty parts
    left out.
    """
    parts = []
    if inputs.resume_text:
        parts.append(inputs.resume_text)
    if inputs.additional_context:
        parts.append(inputs.additional_context)
    if inputs.stories:
        parts.append("\n\n".join(f"{s.question}\n{s.answer}" for s in inputs.stories))
    if inputs.documents:
        parts.append("\n\n".join(d.content for d in inputs.documents))
    return SECTION_SEPARATOR.join(parts)


def profile_hash(text: str) -> str:
    """Cheap fingerprint of the profile text: length plus both ends."""
    return f"{len(text)}-{text[:HASH_AFFIX_CHARS]}-{text[-HASH_AFFIX_CHARS:]}"


@dataclass(frozen=True)
class CandidateProfile:
    """Built profile text with its fingerprint."""

    text: str
    profile_hash: str

    @classmethod
    def build(cls, inputs: ProfileInputs) -> "CandidateProfile":
        text = build_profile_text(inputs)
        return cls(text=text, profile_hash=profile_hash(text))


@dataclass(frozen=True)
class _CachedProfile:
    profile_hash: str
    vector: np.ndarray


class CandidateProfileManager:
    """
    Owns the cached profile vector.

    The cache is one immutable (hash, vector) pair swapped in a single
    assignment. Changes are not watched: the content store must call
    ``invalidate`` when the resume, context, stories or documents change
    (``attach`` registers that hook).
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: Optional[ContentStore] = None,
        index: Optional[VectorIndex] = None,
    ):
        """
        Initialize the manager.

        Args:
            embedder: Provider used to embed the profile text.
            store: Default source of profile inputs.
            index: When given, each freshly embedded profile is also
                published as a ``profile`` record.
        """
        self.embedder = embedder
        self.store = store
        self.index = index
        self._cache: Optional[_CachedProfile] = None

    def _resolve_inputs(self, inputs: Optional[ProfileInputs]) -> ProfileInputs:
        if inputs is not None:
            return inputs
        if self.store is None:
            raise ValueError("No profile inputs given and no content store attached")
        return ProfileInputs.from_store(self.store)

    def has_valid_profile(self, inputs: Optional[ProfileInputs] = None) -> bool:
        """Whether a profile can be built (a resume is present)."""
        return self._resolve_inputs(inputs).has_resume

    @property
    def cached_hash(self) -> Optional[str]:
        cache = self._cache
        return cache.profile_hash if cache else None

    async def get_profile_vector(
        self, inputs: Optional[ProfileInputs] = None
    ) -> np.ndarray:
        """
        Return the profile vector, embedding only when the profile changed.

        Args:
            inputs: Profile inputs. Defaults to reading the attached store.

        Returns:
            The normalized profile vector.

        Raises:
            ProfileUnavailableError: If there is no resume text.
        """
        inputs = self._resolve_inputs(inputs)
        if not inputs.has_resume:
            raise ProfileUnavailableError("A resume is required to build the candidate profile")

        profile = CandidateProfile.build(inputs)
        cache = self._cache
        if cache is not None and cache.profile_hash == profile.profile_hash:
            return cache.vector

        logger.info("Generating candidate profile embedding")
        result = await self.embedder.embed(profile.text)
        self._cache = _CachedProfile(profile_hash=profile.profile_hash, vector=result.vector)

        if self.index is not None:
            self.index.upsert(
                EmbeddingRecord(
                    entity_type=EntityType.PROFILE,
                    entity_id=PROFILE_ENTITY_ID,
                    vector=result.vector,
                    content_hash=result.text_hash,
                )
            )

        return result.vector

    def invalidate(self) -> None:
        """Drop the cached vector so the next request re-embeds."""
        if self._cache is not None:
            logger.debug("Candidate profile cache invalidated")
        self._cache = None

    def attach(self, store: ContentStore) -> None:
        """Use ``store`` for inputs and invalidate whenever it reports a change."""
        self.store = store
        store.add_profile_listener(self.invalidate)
