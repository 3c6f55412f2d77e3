"""
Pydantic content models for careermatch.

This module provides the models the core reads through the content
store boundary.
"""

# Base models
from .base import ContentModel, EmbeddedModel, TimestampMixin, generate_id

# Content models
from .content import (
    ContextDocument,
    Job,
    JobPosting,
    JobSummary,
    Note,
    QAEntry,
    ResumeAnalysis,
    SavedStory,
)

__all__ = [
    # Base
    "ContentModel",
    "EmbeddedModel",
    "TimestampMixin",
    "generate_id",
    # Content
    "ContextDocument",
    "Job",
    "JobPosting",
    "JobSummary",
    "Note",
    "QAEntry",
    "ResumeAnalysis",
    "SavedStory",
]
