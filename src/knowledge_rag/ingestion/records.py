"""Assemble persistable chunk records from chunk text and embeddings."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel

from knowledge_rag.models import ChunkMetadata, ChunkRecord


class DocumentContext(BaseModel):
    """Per-document fields copied onto every chunk record."""

    namespace: str
    category: str
    file_type: str
    source: str


def chunk_id(index: int) -> str:
    return f"chunk_{index}"


def build_chunk_record(
    content: str,
    index: int,
    context: DocumentContext,
    embedding: Sequence[float],
) -> ChunkRecord:
    """Return the :class:`ChunkRecord` for chunk *index* of a document.

    Pure: no I/O.  Raises ``ValueError`` for a negative *index* or blank
    *content*.
    """
    if index < 0:
        raise ValueError(f"chunk index must be >= 0, got {index}")
    if not content.strip():
        raise ValueError(f"chunk {index} has no content")

    return ChunkRecord(
        id=chunk_id(index),
        content=content,
        embedding=list(embedding),
        metadata=ChunkMetadata(
            source=context.source,
            chunk_index=index,
            category=context.category,
            file_type=context.file_type,
            namespace=context.namespace,
        ),
    )
