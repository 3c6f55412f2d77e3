"""
Resume improvement extractor.

Compares the resumes of earlier jobs with the AI-tailored versions
written for them and keeps the edits worth reusing: better phrasing,
added metrics, richer skill descriptions. Edits tied to the target
company are dropped.
"""

import difflib
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from careermatch.core.improvements.policy import JobSpecificityPolicy
from careermatch.data.models import Job
from careermatch.utils.config import ImprovementSettings, get_settings
from careermatch.utils.constants import ImprovementType
from careermatch.utils.logger import get_logger

logger = get_logger(__name__)

# Words, punctuation runs and whitespace runs; joining the tokens gives back the text
DIFF_TOKEN = re.compile(r"\w+|[^\w\s]+|\s+")

METRIC_PATTERN = re.compile(
    r"\d+%|\$[\d,]+|\d+\+?\s*(users|customers|engineers|team|people|projects)",
    re.IGNORECASE,
)
TECH_TERM_PATTERN = re.compile(
    r"API|SDK|AWS|cloud|database|architecture|framework|system|platform",
    re.IGNORECASE,
)

SECTION_TITLES = (
    (ImprovementType.QUANTIFICATION, "Achievement Quantification"),
    (ImprovementType.PHRASING, "Phrasing Improvements"),
    (ImprovementType.SKILL_DESCRIPTION, "Skill Descriptions"),
)


@dataclass(frozen=True)
class SourceJob:
    company: str
    title: str


@dataclass(frozen=True)
class ResumeImprovement:
    """A reusable original-to-improved rewrite."""

    type: ImprovementType
    original: str
    improved: str
    source_job: SourceJob


@dataclass(frozen=True)
class ChangePair:
    original: str
    improved: str


# =============================================================================
# Diffing
# =============================================================================


def word_diff(original: str, revised: str) -> list[tuple[str, str]]:
    """
    Word-level diff as runs of ``("equal" | "removed" | "added", text)``.

    Adjacent runs never share an operation. Within a replacement the
    removed run comes first.
    """
    a = DIFF_TOKEN.findall(original)
    b = DIFF_TOKEN.findall(revised)
    matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)

    runs: list[tuple[str, str]] = []

    def emit(op: str, tokens: Sequence[str]) -> None:
        text = "".join(tokens)
        if not text:
            return
        if runs and runs[-1][0] == op:
            runs[-1] = (op, runs[-1][1] + text)
        else:
            runs.append((op, text))

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            emit("equal", a[i1:i2])
        else:
            emit("removed", a[i1:i2])
            emit("added", b[j1:j2])

    return runs


def extract_changes(original: str, revised: str) -> list[ChangePair]:
    """
    Group adjacent edits into change pairs.

    Removed and added runs accumulate until an unchanged run appears.
    A run of plain spaces between two edits does not end the change, so
    rewriting several neighbouring words yields one pair. Pure insertions
    and pure deletions are not pairs.
    """
    changes: list[ChangePair] = []
    removed: list[str] = []
    added: list[str] = []
    pending = False

    def flush() -> None:
        nonlocal pending
        before = "".join(removed).strip()
        after = "".join(added).strip()
        if pending and before and after:
            changes.append(ChangePair(original=before, improved=after))
        removed.clear()
        added.clear()
        pending = False

    for op, text in word_diff(original, revised):
        if op == "removed":
            removed.append(text)
            pending = True
        elif op == "added":
            added.append(text)
            pending = True
        elif pending and text.isspace() and "\n" not in text:
            removed.append(text)
            added.append(text)
        else:
            flush()

    flush()
    return changes


# =============================================================================
# Filtering and classification
# =============================================================================


def token_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the lowercase whitespace-separated words."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 1.0
    return len(words_a & words_b) / len(union)


def is_substantial_improvement(
    original: str, improved: str, settings: Optional[ImprovementSettings] = None
) -> bool:
    """Long enough, actually different, and not mostly a deletion."""
    s = settings or get_settings().improvements
    if len(original) < s.min_change_length or len(improved) < s.min_change_length:
        return False
    if token_similarity(original, improved) > s.near_duplicate_ceiling:
        return False
    if len(improved) < len(original) * s.min_length_ratio:
        return False
    return True


def classify_improvement(
    original: str, improved: str, settings: Optional[ImprovementSettings] = None
) -> ImprovementType:
    s = settings or get_settings().improvements
    if METRIC_PATTERN.search(improved) and not METRIC_PATTERN.search(original):
        return ImprovementType.QUANTIFICATION
    if TECH_TERM_PATTERN.search(improved) and len(improved) > len(original) * s.skill_length_ratio:
        return ImprovementType.SKILL_DESCRIPTION
    return ImprovementType.PHRASING


def deduplicate_improvements(
    improvements: Iterable[ResumeImprovement], ceiling: float
) -> list[ResumeImprovement]:
    """Drop improvements whose improved text is too close to one already kept."""
    unique: list[ResumeImprovement] = []
    for improvement in improvements:
        if any(token_similarity(k.improved, improvement.improved) > ceiling for k in unique):
            continue
        unique.append(improvement)
    return unique


# =============================================================================
# Extractor
# =============================================================================


class ResumeImprovementExtractor:
    """Mines reusable improvements from other jobs' tailored resumes."""

    def __init__(
        self,
        settings: Optional[ImprovementSettings] = None,
        policy: Optional[JobSpecificityPolicy] = None,
    ):
        self.settings = settings or get_settings().improvements
        self.policy = policy or JobSpecificityPolicy()

    def candidate_jobs(
        self, current_job_id: str, jobs: Iterable[Job], default_resume: str = ""
    ) -> list[Job]:
        """
        Most recently updated other jobs with both an original and a tailored resume.

        Jobs without their own resume text fall back to ``default_resume``.
        The recency window is applied after filtering.
        """
        usable = [
            j
            for j in jobs
            if j.id != current_job_id
            and j.tailored_resume
            and (j.resume_text or default_resume)
        ]
        usable.sort(key=lambda j: j.last_updated or j.date_added, reverse=True)
        return usable[: self.settings.job_window]

    def improvements_for_job(self, job: Job, default_resume: str) -> list[ResumeImprovement]:
        original_resume = job.resume_text or default_resume
        if not original_resume or not job.tailored_resume:
            return []

        source = SourceJob(company=job.company, title=job.title)
        improvements = []
        for change in extract_changes(original_resume, job.tailored_resume):
            if self.policy.is_job_specific(change.original, change.improved, job.company):
                continue
            if not is_substantial_improvement(change.original, change.improved, self.settings):
                continue
            improvements.append(
                ResumeImprovement(
                    type=classify_improvement(change.original, change.improved, self.settings),
                    original=change.original,
                    improved=change.improved,
                    source_job=source,
                )
            )
        return improvements

    def extract_improvements(
        self,
        current_job_id: str,
        jobs: Iterable[Job],
        default_resume: str = "",
        max_results: Optional[int] = None,
    ) -> list[ResumeImprovement]:
        """
        Gather reusable improvements from jobs other than the current one.

        Args:
            current_job_id: Job being tailored now; excluded from mining.
            jobs: All tracked jobs.
            default_resume: Baseline for jobs without their own resume text.
            max_results: Maximum improvements returned. Defaults to config setting.

        Returns:
            Deduplicated improvements, newest jobs first.
        """
        if max_results is None:
            max_results = self.settings.max_results

        collected: list[ResumeImprovement] = []
        for job in self.candidate_jobs(current_job_id, jobs, default_resume):
            collected.extend(self.improvements_for_job(job, default_resume))

        unique = deduplicate_improvements(collected, self.settings.dedupe_ceiling)
        if unique:
            logger.debug(f"Found {len(unique)} reusable resume improvement(s)")
        return unique[:max_results]


def format_improvements_context(improvements: Sequence[ResumeImprovement]) -> str:
    """Render improvements grouped by type, framed as examples to adapt."""
    if not improvements:
        return ""

    sections = []
    for improvement_type, title in SECTION_TITLES:
        items = [
            f'- "{i.original}" → "{i.improved}"'
            for i in improvements
            if ImprovementType(i.type) == improvement_type
        ]
        if items:
            sections.append(f"### {title}\n" + "\n".join(items))

    body = "\n\n".join(sections)
    return (
        "## Learned Improvements from Previous Tailoring\n\n"
        "The following phrasings have been effective in previous resume tailoring:\n\n"
        f"{body}\n\n"
        "Use these proven improvements when applicable. Adapt the phrasing to fit naturally."
    )
