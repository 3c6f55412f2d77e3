"""
Job-specificity policy for mined resume improvements.

A change that only makes sense for the job it was written for (it names
the company, or flatters it) is not reusable elsewhere. The phrase list
is a heuristic; pass a different policy to the extractor to tune it.
"""

import re
from typing import Iterable, Optional, Pattern

DEFAULT_JOB_SPECIFIC_PATTERNS: tuple[str, ...] = (
    r"perfect fit for",
    r"ideal candidate for",
    r"aligns with .+ mission",
    r"passionate about joining",
    r"excited to contribute to",
    r"at your company",
    r"at your organization",
)


class JobSpecificityPolicy:
    """Decides whether a change pair is tied to one particular job."""

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        """
        Args:
            patterns: Regexes (matched case-insensitively) that mark
                company-directed phrasing. Defaults to the built-in list.
        """
        sources = DEFAULT_JOB_SPECIFIC_PATTERNS if patterns is None else tuple(patterns)
        self.patterns: list[Pattern[str]] = [re.compile(p, re.IGNORECASE) for p in sources]

    def introduces_company(self, original: str, improved: str, company: str) -> bool:
        company = company.strip().lower()
        if not company:
            return False
        return company in improved.lower() and company not in original.lower()

    def introduces_pattern(self, original: str, improved: str) -> bool:
        return any(p.search(improved) and not p.search(original) for p in self.patterns)

    def is_job_specific(self, original: str, improved: str, company: str) -> bool:
        """True if the improved text adds the company name or a flattery phrase."""
        return self.introduces_company(original, improved, company) or self.introduces_pattern(
            original, improved
        )
