"""Knowledge retriever — query text in, ranked chunks out.

This module is the **primary public interface** for retrieval.  It is
intentionally decoupled from LangChain retriever abstractions so that
non-LLM callers (scripts, notebooks, tests) can use it directly.

Usage::

    from knowledge_rag.retrieval import KnowledgeRetriever

    retriever = KnowledgeRetriever(store, embedder)
    for hit in retriever.search("What tolerances does CNC machining reach?", k=5):
        print(hit.short_ref(), round(hit.similarity, 3), hit.content[:80])
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from knowledge_rag.ingestion.embedder import Embedder
from knowledge_rag.models import ScoredChunk
from knowledge_rag.retrieval.similarity import DEFAULT_LIMIT, retrieve
from knowledge_rag.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


class KnowledgeRetriever:
    """Embeds queries and ranks them against a fresh store snapshot.

    Parameters
    ----------
    store:
        Document store to scan.  Every call takes its own snapshot, so
        concurrent searches need no locking.
    embedder:
        Embedding adapter used for query text.
    default_k:
        Default number of results returned by :meth:`search`.
    """

    def __init__(self, store: DocumentStore, embedder: Embedder, *, default_k: int = DEFAULT_LIMIT) -> None:
        if default_k < 1:
            raise ValueError("default_k must be >= 1")
        self._store = store
        self._embedder = embedder
        self.default_k = default_k

    # -- public API -----------------------------------------------------------

    def search(self, query: str, *, k: int | None = None) -> list[ScoredChunk]:
        """Embed *query* and return the top-*k* chunks.

        Raises
        ------
        ProviderError
            When the query cannot be embedded.
        StorageUnavailableError
            When the storage root cannot be enumerated.
        """
        embedding = self._embedder.embed(query)
        return self.search_by_embedding(embedding, k=k)

    def search_by_embedding(self, embedding: Sequence[float], *, k: int | None = None) -> list[ScoredChunk]:
        """Same as :meth:`search` but accepts a pre-computed embedding."""
        k = k if k is not None else self.default_k
        units = self._store.load_all()
        results = retrieve(embedding, k, units=units)
        logger.info("Retrieved %d chunks from %d units (k=%d)", len(results), len(units), k)
        return results

    # -- LangChain compat -----------------------------------------------------

    def as_langchain_retriever(self, k: int | None = None) -> Any:
        """Return a thin LangChain-compatible retriever wrapper.

        LangChain is imported only here so that the rest of the retrieval
        package has **zero** LangChain dependency.
        """
        from langchain_core.documents import Document
        from langchain_core.retrievers import BaseRetriever

        outer = self

        class _LCRetriever(BaseRetriever):
            """Adapter that satisfies LangChain's retriever protocol."""

            def _get_relevant_documents(self_inner, query: str, **kwargs: Any) -> list[Document]:  # type: ignore[override]  # noqa: N805
                return [
                    Document(
                        page_content=hit.content,
                        metadata={**hit.metadata.to_wire(), "similarity": hit.similarity},
                    )
                    for hit in outer.search(query, k=k)
                ]

        return _LCRetriever()
