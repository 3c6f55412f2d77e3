"""
Context retrieval for AI tasks.

Components:
- extract_queries / QUERY_RULES: Declarative per-task query extraction
- MultiQueryRetrievalEngine: Concurrent search, deduplication and selection
- ContextRetriever: Single-query retrieval of stories, Q&A history and documents
- format_context / format_retrieved_context: Render selections into prompt sections
"""

from .formatting import format_context, format_retrieved_context, story_heading
from .queries import (
    QUERY_RULES,
    ExtractionRule,
    QuerySource,
    RetrievalQuery,
    TaskInputs,
    extract_queries,
)
from .retrieval_engine import (
    DeduplicatedHit,
    MultiQueryRetrievalEngine,
    RetrievalResult,
    merge_hits,
)
from .context_retriever import (
    ContextRetriever,
    QAContext,
    RetrievedContext,
)

__all__ = [
    "format_context",
    "format_retrieved_context",
    "story_heading",
    "QUERY_RULES",
    "ExtractionRule",
    "QuerySource",
    "RetrievalQuery",
    "TaskInputs",
    "extract_queries",
    "DeduplicatedHit",
    "MultiQueryRetrievalEngine",
    "RetrievalResult",
    "merge_hits",
    "ContextRetriever",
    "QAContext",
    "RetrievedContext",
]
