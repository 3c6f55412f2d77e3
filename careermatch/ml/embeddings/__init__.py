"""
Text embedding, worker isolation and vector search.

This module turns free text into normalized vectors on a dedicated
worker thread and keeps an in-memory index of embedded content.

Components:
- EmbeddingModel: Wrapper for sentence-transformers models
- EmbeddingWorker / EmbeddingService: Message-based worker and its async client
- VectorIndex: Nearest-neighbour store keyed by entity
- SemanticSearch: Text-query search over the index
- ContentIndexer: Keeps the index in sync with the content store
"""

from .embedding_model import (
    EmbeddingModel,
    compute_text_hash,
    get_embedding_model,
    truncate_text,
)

from .messages import (
    BatchItemResult,
    EmbeddingResult,
    EmbedItem,
    ErrorCode,
    ModelProgressResponse,
    generate_request_id,
)

from .provider import EmbeddingProvider

from .worker import EmbeddingWorker

from .service import (
    EmbeddingService,
    get_embedding_service,
)

from .vector_index import (
    EmbeddingRecord,
    SearchResult,
    VectorIndex,
    cosine_similarity,
    get_vector_index,
)

from .search import (
    SemanticSearch,
    get_semantic_search,
)

from .indexer import (
    ContentIndexer,
    IndexingReport,
    IndexItem,
    extract_cover_letter_text,
    extract_document_text,
    extract_job_text,
    extract_note_text,
    extract_qa_text,
    extract_story_text,
    job_items,
)

__all__ = [
    # Embedding model
    "EmbeddingModel",
    "compute_text_hash",
    "get_embedding_model",
    "truncate_text",
    # Worker protocol
    "BatchItemResult",
    "EmbeddingResult",
    "EmbedItem",
    "ErrorCode",
    "ModelProgressResponse",
    "generate_request_id",
    "EmbeddingWorker",
    # Provider
    "EmbeddingProvider",
    "EmbeddingService",
    "get_embedding_service",
    # Vector index
    "EmbeddingRecord",
    "SearchResult",
    "VectorIndex",
    "cosine_similarity",
    "get_vector_index",
    # Search
    "SemanticSearch",
    "get_semantic_search",
    # Indexing
    "ContentIndexer",
    "IndexingReport",
    "IndexItem",
    "extract_cover_letter_text",
    "extract_document_text",
    "extract_job_text",
    "extract_note_text",
    "extract_qa_text",
    "extract_story_text",
    "job_items",
]
