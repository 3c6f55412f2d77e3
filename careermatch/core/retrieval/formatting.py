"""Renders selected stories, Q&A and documents into prompt context."""

from typing import TYPE_CHECKING, Sequence

from careermatch.data.models import ContextDocument, SavedStory
from careermatch.utils.constants import (
    ADDITIONAL_CONTEXT_HEADING,
    DEFAULT_STORY_HEADING,
    DOCUMENT_SECTION_HEADING,
    QA_SECTION_HEADING,
    SECTION_SEPARATOR,
    STORY_SECTION_HEADINGS,
    TaskType,
)

if TYPE_CHECKING:
    from careermatch.core.retrieval.context_retriever import RetrievedContext


def _stories_body(stories: Sequence[SavedStory]) -> str:
    return "\n\n".join(f"**{s.question}**\n{s.answer}" for s in stories)


def _documents_body(documents: Sequence[ContextDocument]) -> str:
    return "\n\n".join(f"### {d.name}\n{d.content}" for d in documents)


def story_heading(task: TaskType) -> str:
    return STORY_SECTION_HEADINGS.get(TaskType(task), DEFAULT_STORY_HEADING)


def format_context(
    task: TaskType,
    stories: Sequence[SavedStory],
    documents: Sequence[ContextDocument],
    additional_context: str = "",
    improvements_context: str = "",
) -> str:
    """
    Build the context block appended to an AI prompt.

    Sections appear in a fixed order (stories, documents, improvements,
    additional context), each separated by a horizontal rule. The block
    starts with a separator so it can be appended to a prompt as is.

    Returns:
        The context block, or an empty string when there is nothing to add.
    """
    sections = []

    if stories:
        sections.append(f"## {story_heading(task)}\n\n{_stories_body(stories)}")

    if documents:
        sections.append(f"## {DOCUMENT_SECTION_HEADING}\n\n{_documents_body(documents)}")

    if improvements_context and improvements_context.strip():
        sections.append(improvements_context)

    if additional_context and additional_context.strip():
        sections.append(f"## {ADDITIONAL_CONTEXT_HEADING}\n\n{additional_context}")

    if not sections:
        return ""

    return SECTION_SEPARATOR + SECTION_SEPARATOR.join(sections)


def format_retrieved_context(context: "RetrievedContext") -> str:
    """
    Render single-query context: stories, then Q&A history, then documents.

    Unlike ``format_context`` the block does not start with a separator.
    Each Q&A entry names the company and job it was asked for.
    """
    sections = []

    if context.stories:
        sections.append(f"## {DEFAULT_STORY_HEADING}\n{_stories_body(context.stories)}")

    if context.qa_entries:
        body = "\n\n".join(
            f"**Q ({e.company} - {e.job_title}):** {e.qa.question}\n**A:** {e.qa.answer}"
            for e in context.qa_entries
        )
        sections.append(f"## {QA_SECTION_HEADING}\n{body}")

    if context.documents:
        sections.append(f"## {DOCUMENT_SECTION_HEADING}\n{_documents_body(context.documents)}")

    return SECTION_SEPARATOR.join(sections)
