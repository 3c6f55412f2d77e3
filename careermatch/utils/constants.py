"""
Application-wide constants for careermatch.

Enums and fixed tables shared across the embedding, matching, retrieval
and improvement components. Tunable numbers live in config.py instead.
"""

from enum import Enum
from typing import Final


# =============================================================================
# Application Constants
# =============================================================================

# Dimension of the reference embedding model (all-MiniLM-L6-v2)
EMBEDDING_DIMENSIONS: Final[int] = 384


# =============================================================================
# Enums
# =============================================================================


class EntityType(str, Enum):
    """Kinds of content that can be embedded and indexed."""

    JOB = "job"
    STORY = "story"
    QA = "qa"
    NOTE = "note"
    DOCUMENT = "document"
    COVER_LETTER = "cover_letter"
    PROFILE = "profile"


class TaskType(str, Enum):
    """AI tasks that request supporting context."""

    COVER_LETTER = "cover_letter"
    RESUME_GRADING = "resume_grading"
    RESUME_TAILORING = "resume_tailoring"
    INTERVIEW_PREP = "interview_prep"
    REFINEMENT = "refinement"


class MatchStatus(str, Enum):
    """Scoring state of a job posting."""

    PENDING = "pending"
    COMPLETE = "complete"
    ERROR = "error"


class ImprovementType(str, Enum):
    """Classification of a mined resume improvement."""

    PHRASING = "phrasing"
    QUANTIFICATION = "quantification"
    SKILL_DESCRIPTION = "skill_description"


class ProgressStage(str, Enum):
    """Stages reported while the embedding model initializes."""

    DOWNLOAD = "download"
    LOAD = "load"
    READY = "ready"


# =============================================================================
# Scoring Constants
# =============================================================================

# Letter grades by minimum score, highest first. Anything below the last
# breakpoint is an F.
GRADE_BREAKPOINTS: Final[tuple[tuple[int, str], ...]] = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (40, "D"),
)
FAILING_GRADE: Final[str] = "F"


# =============================================================================
# Retrieval Constants
# =============================================================================

# Entity types searched when gathering context for an AI task
RETRIEVABLE_ENTITY_TYPES: Final[tuple[EntityType, ...]] = (
    EntityType.STORY,
    EntityType.DOCUMENT,
)

# Heading used for the stories section, per task
STORY_SECTION_HEADINGS: Final[dict[TaskType, str]] = {
    TaskType.RESUME_TAILORING: "Experiences That Could Address Gaps",
    TaskType.INTERVIEW_PREP: "Relevant Interview Examples",
    TaskType.COVER_LETTER: "Relevant Experiences to Highlight",
}
DEFAULT_STORY_HEADING: Final[str] = "Relevant Experiences"
DOCUMENT_SECTION_HEADING: Final[str] = "Reference Documents"
ADDITIONAL_CONTEXT_HEADING: Final[str] = "Additional Context"
QA_SECTION_HEADING: Final[str] = "Previous Q&A"

# Separator between profile parts and between prompt context sections
SECTION_SEPARATOR: Final[str] = "\n\n---\n\n"

# Tasks that also receive improvements mined from earlier tailoring
IMPROVEMENT_TASKS: Final[frozenset[TaskType]] = frozenset({
    TaskType.RESUME_TAILORING,
    TaskType.REFINEMENT,
})
