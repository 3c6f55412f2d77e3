"""
Candidate profile building and caching.

Components:
- build_profile_text / profile_hash: Pure profile assembly and fingerprinting
- CandidateProfileManager: Owns the cached profile vector
"""

from .profile_manager import (
    CandidateProfile,
    CandidateProfileManager,
    ProfileInputs,
    build_profile_text,
    profile_hash,
)

__all__ = [
    "CandidateProfile",
    "CandidateProfileManager",
    "ProfileInputs",
    "build_profile_text",
    "profile_hash",
]
