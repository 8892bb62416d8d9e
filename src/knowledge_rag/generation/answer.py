"""Answer generation — retrieved chunks in, natural-language answer out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from knowledge_rag.config import settings
from knowledge_rag.errors import ProviderError, StorageUnavailableError
from knowledge_rag.generation.prompts import build_answer_prompt
from knowledge_rag.models import ScoredChunk

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from knowledge_rag.retrieval.retriever import KnowledgeRetriever

logger = logging.getLogger(__name__)


class Answer(BaseModel):
    """Generated answer plus the chunks it was grounded on."""

    answer: str
    sources: list[ScoredChunk] = Field(default_factory=list)

    @property
    def has_context(self) -> bool:
        return bool(self.sources)


class AnswerService:
    """Retrieve context for a question and ask the LLM to answer it.

    Retrieval problems never block an answer: when the query cannot be
    embedded or the store is unreachable, the question is answered
    without retrieved context.

    Parameters
    ----------
    retriever:
        Source of ranked chunks.
    llm:
        Any LangChain chat model.
    k:
        Number of chunks to put in the prompt (retriever default if ``None``).
    persona:
        Who the assistant is, inserted into the system prompt.
    """

    def __init__(
        self,
        retriever: KnowledgeRetriever,
        llm: BaseChatModel,
        *,
        k: int | None = None,
        persona: str | None = None,
    ) -> None:
        self._retriever = retriever
        self._llm = llm
        self.k = k
        self.persona = persona or settings.assistant_persona

    def retrieve_context(self, query: str) -> list[ScoredChunk]:
        """Return the chunks for *query*, or ``[]`` if retrieval is unavailable."""
        try:
            return self._retriever.search(query, k=self.k)
        except (ProviderError, StorageUnavailableError) as exc:
            logger.warning("Answering without retrieved context: %s", exc, exc_info=True)
            return []

    def answer(self, query: str) -> Answer:
        """Answer *query*.

        Raises
        ------
        ValueError
            When *query* is blank.
        ProviderError
            When the LLM call fails.
        """
        if not query.strip():
            raise ValueError("query must not be empty")

        sources = self.retrieve_context(query)
        messages = build_answer_prompt(query, sources, persona=self.persona)
        try:
            response = self._llm.invoke(messages)
        except Exception as exc:
            raise ProviderError(f"answer generation failed: {exc}") from exc

        content = response.content if isinstance(response.content, str) else str(response.content)
        logger.info("Answered query with %d context chunks", len(sources))
        return Answer(answer=content.strip(), sources=sources)
