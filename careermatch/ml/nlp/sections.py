"""
Section heuristics over job description text.

Best-effort regex extraction. Callers must treat ``None`` as "section
not found" and fall back to the full text.
"""

import re
from typing import Optional

from careermatch.utils.config import get_settings

# Headers that introduce a requirements/qualifications section
REQUIREMENTS_HEADER = re.compile(
    r"\b(?:requirements?|qualifications?|what you.ll bring|must have|skills required"
    r"|you (?:have|will have|should have|bring))\b[\s:]+",
    re.IGNORECASE,
)

# A blank line or the next well-known section closes the requirements
SECTION_END = re.compile(
    r"\n\s*\n|\b(?:responsibilities|about (?:us|the)|benefits|perks|what we offer)\b",
    re.IGNORECASE,
)

MAX_SECTION_CHARS = 1000


def extract_requirements_section(
    text: str, min_length: Optional[int] = None
) -> Optional[str]:
    """
    Extract the requirements/qualifications part of a job description.

    Args:
        text: Full job description.
        min_length: Shortest section worth trusting. Defaults to config setting.

    Returns:
        The section text (at most 1000 characters), or None when no
        header yields a section of at least ``min_length`` characters.
    """
    if min_length is None:
        min_length = get_settings().scoring.min_requirements_length

    for header in REQUIREMENTS_HEADER.finditer(text):
        body = text[header.end():]
        end = SECTION_END.search(body)
        section = body[: end.start()] if end else body
        section = section[:MAX_SECTION_CHARS].strip()
        if len(section) >= min_length:
            return section

    return None
