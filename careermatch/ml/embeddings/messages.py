"""
Message protocol between the embedding service and its worker thread.

Every request carries a correlation id and every response (progress,
result or error) echoes it, so several requests can be in flight at
once.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

import numpy as np

from careermatch.utils.constants import EntityType, ProgressStage


def generate_request_id() -> str:
    """Unique correlation id for one request."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class ErrorCode(str, Enum):
    """Error codes reported by the worker."""

    INIT_FAILED = "INIT_FAILED"
    EMBED_FAILED = "EMBED_FAILED"
    UNKNOWN_REQUEST = "UNKNOWN_REQUEST"


@dataclass(frozen=True)
class EmbedItem:
    """One text in a batch, optionally labelled with the entity it came from."""

    text: str
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None


@dataclass(frozen=True)
class EmbeddingResult:
    """Vector plus the hash of the untruncated source text."""

    vector: np.ndarray
    text_hash: str


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of one batch item; exactly one of vector or error is set."""

    entity_type: Optional[EntityType]
    entity_id: Optional[str]
    vector: Optional[np.ndarray] = None
    text_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.vector is not None


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class InitModelRequest:
    id: str


@dataclass(frozen=True)
class EmbedTextRequest:
    id: str
    text: str


@dataclass(frozen=True)
class EmbedBatchRequest:
    id: str
    items: tuple[EmbedItem, ...] = field(default_factory=tuple)


WorkerRequest = Union[InitModelRequest, EmbedTextRequest, EmbedBatchRequest]


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelProgressResponse:
    id: str
    stage: ProgressStage
    progress: float


@dataclass(frozen=True)
class ModelReadyResponse:
    id: str


@dataclass(frozen=True)
class EmbeddingResultResponse:
    id: str
    vector: np.ndarray
    text_hash: str


@dataclass(frozen=True)
class BatchResultResponse:
    id: str
    results: tuple[BatchItemResult, ...]


@dataclass(frozen=True)
class ErrorResponse:
    id: str
    code: ErrorCode
    message: str


WorkerResponse = Union[
    ModelProgressResponse,
    ModelReadyResponse,
    EmbeddingResultResponse,
    BatchResultResponse,
    ErrorResponse,
]
