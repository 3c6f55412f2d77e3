"""
Text heuristics over job descriptions.

Components:
- extract_requirements_section: Pulls the requirements section out of a posting
"""

from .sections import (
    MAX_SECTION_CHARS,
    REQUIREMENTS_HEADER,
    SECTION_END,
    extract_requirements_section,
)

__all__ = [
    "MAX_SECTION_CHARS",
    "REQUIREMENTS_HEADER",
    "SECTION_END",
    "extract_requirements_section",
]
