"""
Content models consumed by the matching and retrieval core.

These mirror what the job-search tracker keeps for the user: saved
interview stories, reference documents, tracked jobs with their
AI-generated artifacts, and job postings awaiting a match score.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from .base import ContentModel, EmbeddedModel


class SavedStory(ContentModel):
    """A reusable experience story, phrased as a question and an answer."""

    question: str
    answer: str
    category: Optional[str] = None
    skills: list[str] = Field(default_factory=list)


class ContextDocument(ContentModel):
    """An uploaded reference document (portfolio, brag doc, past review)."""

    name: str
    full_text: str
    summary: Optional[str] = None
    use_summary: bool = False

    @property
    def content(self) -> str:
        """Text used for profiles and prompts; the summary when requested."""
        if self.use_summary and self.summary:
            return self.summary
        return self.full_text


class JobSummary(EmbeddedModel):
    """AI-extracted digest of a job description."""

    short_description: str = ""
    requirements: list[str] = Field(default_factory=list)
    nice_to_haves: list[str] = Field(default_factory=list)
    key_skills: list[str] = Field(default_factory=list)
    level: str = ""


class ResumeAnalysis(EmbeddedModel):
    """AI grading of a resume against a job description."""

    grade: str = ""
    match_percentage: int = Field(default=0, ge=0, le=100)
    strengths: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    matched_keywords: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)


class QAEntry(ContentModel):
    """A question asked about a job, with the answer if one was given."""

    question: str
    answer: str = ""


class Note(ContentModel):
    """A free-form note attached to a job."""

    content: str


class Job(ContentModel):
    """A job the user is tracking, with the artifacts generated for it."""

    title: str
    company: str
    jd_text: str = ""
    summary: Optional[JobSummary] = None
    resume_analysis: Optional[ResumeAnalysis] = None
    resume_text: Optional[str] = None
    tailored_resume: Optional[str] = None
    cover_letter: Optional[str] = None
    qa_history: list[QAEntry] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    date_added: datetime = Field(default_factory=datetime.utcnow)
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("title", "company")
    @classmethod
    def strip_names(cls, v: str) -> str:
        return v.strip()


class JobPosting(EmbeddedModel):
    """A job posting to be scored against the candidate profile."""

    job_id: str
    title: str = ""
    company: str = ""
    description: str = ""

    @property
    def match_text(self) -> str:
        """Text embedded when scoring: title, company line and description."""
        parts = [self.title]
        if self.company:
            parts.append(f"at {self.company}")
        parts.append(self.description)
        return "\n\n".join(p for p in parts if p)
