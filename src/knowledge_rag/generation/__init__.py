"""
Generation — prompt assembly and LLM answering over retrieved chunks.
"""

from knowledge_rag.generation.answer import Answer, AnswerService

__all__ = ["Answer", "AnswerService"]
