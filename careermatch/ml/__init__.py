"""
Machine learning modules for careermatch.

Submodules:
- embeddings: Text embedding, worker isolation and vector search
- nlp: Text heuristics over job descriptions
"""
