"""
careermatch - semantic matching and context retrieval for a job-search tracker.

Embeds resumes, stories, documents and job descriptions, scores job postings
against a cached candidate profile, retrieves supporting content for AI tasks
and mines past resume tailoring for reusable improvements.
"""

__app_name__ = "careermatch"
__version__ = "0.1.0"
