"""
Core matching and retrieval logic for careermatch.

Submodules:
- profile: Candidate profile building and caching
- matching: Job-to-candidate match scoring
- retrieval: Multi-query context retrieval for AI tasks
- improvements: Mining reusable improvements from tailored resumes
"""
