"""
In-memory vector index for embedded content.

A pure nearest-neighbour store keyed by (entity type, entity id).
Readers always work on an immutable snapshot; writers publish a new
snapshot under a lock, so no reader sees a half-applied update.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import numpy as np

from careermatch.utils.config import get_settings
from careermatch.utils.constants import EntityType
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

RecordKey = tuple[EntityType, str]


@dataclass(frozen=True)
class EmbeddingRecord:
    """One embedded unit of content. Replaced wholesale, never mutated."""

    entity_type: EntityType
    entity_id: str
    vector: np.ndarray
    content_hash: str
    parent_job_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def key(self) -> RecordKey:
        return (EntityType(self.entity_type), self.entity_id)


@dataclass
class SearchResult:
    """Result from a vector similarity search."""

    record: EmbeddingRecord
    score: float

    @property
    def entity_type(self) -> EntityType:
        return EntityType(self.record.entity_type)

    @property
    def entity_id(self) -> str:
        return self.record.entity_id


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity of two vectors, in [-1, 1].

    Returns 0.0 when either vector has zero norm.
    """
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(a, b) / norm, -1.0, 1.0))


class VectorIndex:
    """
    Mapping from (entity type, entity id) to embedding records.

    Query results are ranked by cosine similarity, descending, with ties
    kept in insertion order. Replacing a record counts as a fresh
    insertion.
    """

    def __init__(self, dimension: Optional[int] = None):
        """
        Initialize an empty index.

        Args:
            dimension: Required vector length. Defaults to config setting.
        """
        self.dimension = dimension or get_settings().embedding.dimension
        self._lock = threading.Lock()
        self._records: Mapping[RecordKey, EmbeddingRecord] = MappingProxyType({})

    def _check_dimension(self, vector: np.ndarray) -> None:
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            raise ValueError(
                f"Expected a {self.dimension}-d vector, got shape {vector.shape}"
            )

    def _publish(self, records: dict[RecordKey, EmbeddingRecord]) -> None:
        self._records = MappingProxyType(records)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def upsert(self, record: EmbeddingRecord) -> None:
        """Insert a record, replacing any record with the same key."""
        self.upsert_many([record])

    def upsert_many(self, records: Iterable[EmbeddingRecord]) -> None:
        records = list(records)
        for record in records:
            self._check_dimension(np.asarray(record.vector))

        with self._lock:
            updated = dict(self._records)
            for record in records:
                updated.pop(record.key, None)
                updated[record.key] = record
            self._publish(updated)

        logger.debug(f"Upserted {len(records)} embedding record(s)")

    def remove(self, entity_type: EntityType, entity_id: str) -> bool:
        """Remove one record. Returns True if it existed."""
        key = (EntityType(entity_type), entity_id)
        with self._lock:
            if key not in self._records:
                return False
            updated = dict(self._records)
            del updated[key]
            self._publish(updated)
        return True

    def remove_job(self, job_id: str) -> int:
        """
        Remove a job record and every record owned by that job.

        Returns:
            Number of records removed.
        """
        with self._lock:
            updated = {
                key: record
                for key, record in self._records.items()
                if key != (EntityType.JOB, job_id) and record.parent_job_id != job_id
            }
            removed = len(self._records) - len(updated)
            if removed:
                self._publish(updated)
        if removed:
            logger.debug(f"Removed {removed} embedding record(s) for job {job_id}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._publish({})

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, entity_type: EntityType, entity_id: str) -> Optional[EmbeddingRecord]:
        return self._records.get((EntityType(entity_type), entity_id))

    def text_hash(self, entity_type: EntityType, entity_id: str) -> Optional[str]:
        """Content hash stored for an entity, or None if it was never embedded."""
        record = self.get(entity_type, entity_id)
        return record.content_hash if record else None

    def find_stale(
        self, entities: Iterable[tuple[EntityType, str, str]]
    ) -> list[RecordKey]:
        """
        Find entities whose stored hash is missing or out of date.

        Args:
            entities: (entity type, entity id, current content hash) triples.

        Returns:
            Keys of the entities that need re-embedding, in input order.
        """
        snapshot = self._records
        stale = []
        for entity_type, entity_id, content_hash in entities:
            key = (EntityType(entity_type), entity_id)
            record = snapshot.get(key)
            if record is None or record.content_hash != content_hash:
                stale.append(key)
        return stale

    def query(
        self,
        vector: np.ndarray,
        limit: int = 5,
        threshold: float = 0.3,
        entity_types: Optional[Iterable[EntityType]] = None,
        parent_job_id: Optional[str] = None,
        exclude: Optional[RecordKey] = None,
    ) -> list[SearchResult]:
        """
        Find the records most similar to a vector.

        Args:
            vector: Query vector.
            limit: Maximum number of results.
            threshold: Minimum cosine similarity; records below it are excluded.
            entity_types: Allow-list of entity types. None means all types.
            parent_job_id: Only return records owned by this job.
            exclude: Key of a record to leave out of the results.

        Returns:
            Search results, highest similarity first.

        Raises:
            ValueError: If the vector has the wrong dimension.
        """
        query_vector = np.asarray(vector, dtype=np.float32)
        self._check_dimension(query_vector)
        if limit <= 0:
            return []

        allowed = (
            {EntityType(t) for t in entity_types} if entity_types is not None else None
        )
        candidates = [
            record
            for key, record in self._records.items()
            if (allowed is None or key[0] in allowed)
            and (parent_job_id is None or record.parent_job_id == parent_job_id)
            and key != exclude
        ]
        if not candidates:
            return []

        matrix = np.stack([np.asarray(r.vector, dtype=np.float32) for r in candidates])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
        dots = matrix @ query_vector
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
        scores = np.clip(scores, -1.0, 1.0)

        results = [
            SearchResult(record=record, score=float(score))
            for record, score in zip(candidates, scores)
            if score >= threshold
        ]
        # sorted() is stable, so ties keep insertion order
        results = sorted(results, key=lambda r: r.score, reverse=True)
        return results[:limit]

    def find_similar_to_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        limit: int = 5,
        threshold: float = 0.3,
        entity_types: Optional[Iterable[EntityType]] = None,
    ) -> list[SearchResult]:
        """Records most similar to an already indexed entity, excluding itself."""
        record = self.get(entity_type, entity_id)
        if record is None:
            return []
        return self.query(
            record.vector,
            limit=limit,
            threshold=threshold,
            entity_types=entity_types,
            exclude=record.key,
        )

    def count(self, entity_type: Optional[EntityType] = None) -> int:
        if entity_type is None:
            return len(self._records)
        entity_type = EntityType(entity_type)
        return sum(1 for key in self._records if key[0] == entity_type)

    def stats(self) -> dict[str, int]:
        """Record counts per entity type, plus the total."""
        snapshot = self._records
        counts = {t.value: 0 for t in EntityType}
        for entity_type, _ in snapshot:
            counts[entity_type.value] += 1
        counts["total"] = len(snapshot)
        return counts


# Singleton instance
_vector_index: Optional[VectorIndex] = None


def get_vector_index() -> VectorIndex:
    """Get the vector index singleton instance."""
    global _vector_index
    if _vector_index is None:
        _vector_index = VectorIndex()
    return _vector_index
