"""
Retrieval — exhaustive cosine ranking over persisted chunk records.

Public surface
--------------
- :func:`retrieve` — rank a query vector against a snapshot of units.
- :func:`cosine_similarity` — the scoring function on its own.
- :class:`KnowledgeRetriever` — embeds query text and searches the store.
"""

from knowledge_rag.retrieval.retriever import KnowledgeRetriever
from knowledge_rag.retrieval.similarity import DEFAULT_LIMIT, cosine_similarity, retrieve

__all__ = [
    "DEFAULT_LIMIT",
    "KnowledgeRetriever",
    "cosine_similarity",
    "retrieve",
]
