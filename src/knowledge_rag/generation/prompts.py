"""Prompt templates for answer generation.

Keeping prompts in one place makes them easy to audit, version, and A/B
test.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from knowledge_rag.models import ScoredChunk

SYSTEM_TEMPLATE = """\
You are {persona}. Always respond with concise bullet points. Summarize
information clearly and avoid lengthy explanations. Focus on delivering
maximum value with minimum words.
"""

WITH_CONTEXT_TEMPLATE = """\
Use the following information to answer the question:

{context}

Question: {query}

Response guidelines:
1. Format your response as a concise summary with bullet points.
2. Highlight only the most important information, in short, clear sentences.
3. If the information provided doesn't contain the answer, say so clearly
   and give 2-3 bullet points of general information.
"""

WITHOUT_CONTEXT_TEMPLATE = """\
Question: {query}

Response guidelines:
1. Format your response as a concise summary of 3-5 bullet points.
2. Use short, clear sentences and provide only general information.
3. If you don't know the specific answer, say so and suggest contacting
   the organization directly.
"""


def format_context(chunks: Sequence[ScoredChunk]) -> str:
    """Join chunk contents with blank lines, best match first."""
    return "\n\n".join(chunk.content for chunk in chunks)


def build_answer_prompt(query: str, chunks: Sequence[ScoredChunk], *, persona: str) -> list[BaseMessage]:
    """Build the chat messages for one question.

    Falls back to a general-knowledge prompt when *chunks* is empty.
    """
    if chunks:
        user = WITH_CONTEXT_TEMPLATE.format(context=format_context(chunks), query=query)
    else:
        user = WITHOUT_CONTEXT_TEMPLATE.format(query=query)
    return [
        SystemMessage(content=SYSTEM_TEMPLATE.format(persona=persona)),
        HumanMessage(content=user),
    ]
