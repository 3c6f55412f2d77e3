"""
Mining reusable improvements from previously tailored resumes.

Components:
- ResumeImprovementExtractor: Diffs, filters, classifies and deduplicates edits
- JobSpecificityPolicy: Replaceable filter for company-directed edits
- format_improvements_context: Renders improvements for a prompt
"""

from .extractor import (
    ChangePair,
    ResumeImprovement,
    ResumeImprovementExtractor,
    SourceJob,
    classify_improvement,
    deduplicate_improvements,
    extract_changes,
    format_improvements_context,
    is_substantial_improvement,
    token_similarity,
    word_diff,
)
from .policy import DEFAULT_JOB_SPECIFIC_PATTERNS, JobSpecificityPolicy

__all__ = [
    "ChangePair",
    "ResumeImprovement",
    "ResumeImprovementExtractor",
    "SourceJob",
    "classify_improvement",
    "deduplicate_improvements",
    "extract_changes",
    "format_improvements_context",
    "is_substantial_improvement",
    "token_similarity",
    "word_diff",
    "DEFAULT_JOB_SPECIFIC_PATTERNS",
    "JobSpecificityPolicy",
]
