"""
Query extraction for multi-query retrieval.

Each task maps to an ordered list of declarative rules. A rule pulls a
list of strings out of the task inputs (requirements, gaps, the user's
message, ...), caps it, and tags every resulting query with the rule's
source so hits can be explained later.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from careermatch.data.models import Job, ResumeAnalysis
from careermatch.utils.config import get_settings
from careermatch.utils.constants import TaskType


class QuerySource(str, Enum):
    """Which rule produced a query."""

    REQUIREMENT = "requirement"
    SKILL = "skill"
    ROLE = "role"
    GAP = "gap"
    MISSING_KEYWORD = "missingKeyword"
    SUGGESTION = "suggestion"
    INTERVIEW_PREP = "interviewPrep"
    USER_MESSAGE = "userMessage"
    JD_FALLBACK = "jdFallback"


@dataclass(frozen=True)
class RetrievalQuery:
    text: str
    source_tag: str


@dataclass(frozen=True)
class TaskInputs:
    """What a task knows when it asks for context."""

    job: Job
    resume_analysis: Optional[ResumeAnalysis] = None
    user_message: Optional[str] = None


@dataclass(frozen=True)
class ExtractionRule:
    """
    One declarative query source.

    Attributes:
        source: Tag attached to every query the rule produces
        values: Pulls candidate strings out of the task inputs
        limit: Maximum number of values used, None for all
        template: Format string applied to each value
        longer_than: Queries must be strictly longer than this
    """

    source: QuerySource
    values: Callable[[TaskInputs], Sequence[str]]
    limit: Optional[int] = None
    template: str = "{value}"
    longer_than: int = 0

    def apply(self, inputs: TaskInputs) -> list[RetrievalQuery]:
        values = [v for v in self.values(inputs) if v and v.strip()]
        if self.limit is not None:
            values = values[: self.limit]
        texts = [self.template.format(value=v.strip()) for v in values]
        return [
            RetrievalQuery(text=t, source_tag=self.source.value)
            for t in texts
            if len(t) > self.longer_than
        ]


# -----------------------------------------------------------------------------
# Value getters
# -----------------------------------------------------------------------------


def _requirements(inputs: TaskInputs) -> list[str]:
    summary = inputs.job.summary
    return list(summary.requirements) if summary else []


def _key_skills(inputs: TaskInputs) -> list[str]:
    summary = inputs.job.summary
    return list(summary.key_skills) if summary else []


def _role(inputs: TaskInputs) -> list[str]:
    if not inputs.job.title:
        return []
    level = inputs.job.summary.level if inputs.job.summary else ""
    return [" ".join(f"{inputs.job.title} {level}".split())]


def _title(inputs: TaskInputs) -> list[str]:
    return [inputs.job.title] if inputs.job.title else []


def _gaps(inputs: TaskInputs) -> list[str]:
    analysis = inputs.resume_analysis
    return list(analysis.gaps) if analysis else []


def _missing_keywords(inputs: TaskInputs) -> list[str]:
    analysis = inputs.resume_analysis
    return list(analysis.missing_keywords) if analysis else []


def _suggestions(inputs: TaskInputs) -> list[str]:
    analysis = inputs.resume_analysis
    return list(analysis.suggestions) if analysis else []


def _user_message(inputs: TaskInputs) -> list[str]:
    return [inputs.user_message] if inputs.user_message else []


QUERY_RULES: dict[TaskType, tuple[ExtractionRule, ...]] = {
    TaskType.COVER_LETTER: (
        ExtractionRule(QuerySource.REQUIREMENT, _requirements, limit=5),
        ExtractionRule(QuerySource.SKILL, _key_skills, limit=5),
        ExtractionRule(QuerySource.ROLE, _role, template="{value} experience"),
    ),
    TaskType.RESUME_GRADING: (
        ExtractionRule(QuerySource.REQUIREMENT, _requirements, limit=5),
        ExtractionRule(QuerySource.SKILL, _key_skills, limit=3),
    ),
    TaskType.RESUME_TAILORING: (
        ExtractionRule(QuerySource.GAP, _gaps),
        ExtractionRule(QuerySource.MISSING_KEYWORD, _missing_keywords, limit=5),
        ExtractionRule(QuerySource.SUGGESTION, _suggestions, limit=3),
    ),
    TaskType.INTERVIEW_PREP: (
        ExtractionRule(
            QuerySource.INTERVIEW_PREP, _title, template="{value} interview preparation"
        ),
        ExtractionRule(QuerySource.REQUIREMENT, _requirements, limit=5),
        ExtractionRule(QuerySource.SKILL, _key_skills, limit=3, template="{value} experience"),
    ),
    TaskType.REFINEMENT: (
        ExtractionRule(QuerySource.USER_MESSAGE, _user_message, longer_than=10),
        ExtractionRule(QuerySource.REQUIREMENT, _requirements, limit=3),
    ),
}


def extract_queries(
    task: TaskType,
    inputs: TaskInputs,
    fallback_chars: Optional[int] = None,
) -> list[RetrievalQuery]:
    """
    Build the queries for a task.

    When no rule yields anything, the start of the job description is
    used as a single fallback query so retrieval still has something to
    search with.

    Args:
        task: Task requesting context.
        inputs: Task inputs.
        fallback_chars: Length of the fallback query. Defaults to config setting.

    Returns:
        Queries in rule order; empty only if there is no usable text at all.
    """
    queries: list[RetrievalQuery] = []
    for rule in QUERY_RULES[TaskType(task)]:
        queries.extend(rule.apply(inputs))

    if not queries and inputs.job.jd_text.strip():
        if fallback_chars is None:
            fallback_chars = get_settings().retrieval.fallback_query_chars
        queries.append(
            RetrievalQuery(
                text=inputs.job.jd_text[:fallback_chars],
                source_tag=QuerySource.JD_FALLBACK.value,
            )
        )

    return queries
