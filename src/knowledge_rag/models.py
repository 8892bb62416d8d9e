"""Domain models for ingested documents, chunk records and retrieval results.

Everything that is persisted or handed to an external caller is a pydantic
model.  Field names are snake_case in Python and camelCase on the wire
(``fileName``, ``chunkCount`` …), so stored units stay readable by other
tooling that expects the established JSON shape.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_UNSAFE_FILE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

DEFAULT_CATEGORY = "general"


def sanitize_file_name(name: str) -> str:
    """Strip directories and replace anything outside ``[a-zA-Z0-9._-]``."""
    base = re.split(r"[\\/]", name.strip())[-1]
    cleaned = _UNSAFE_FILE_CHARS.sub("_", base)
    return cleaned or "unknown"


def normalize_file_type(value: str) -> str:
    """``".PDF"`` → ``"pdf"``; accepts a bare extension or a file name."""
    value = value.strip().lower()
    if "." in value:
        value = value.rsplit(".", 1)[-1]
    return value or "txt"


def make_namespace(category: str, document_id: str) -> str:
    """Build the ``{category}_{id}`` key grouping one document's chunks."""
    slug = _UNSAFE_KEY_CHARS.sub("_", category.strip()) or DEFAULT_CATEGORY
    return f"{slug}_{document_id}"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialise with camelCase keys, the on-disk / HTTP shape."""
        return self.model_dump(mode="json", by_alias=True)


class DocumentRecord(_WireModel):
    """Metadata for one ingested source file.

    Created once when ingestion completes and never mutated afterwards.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    file_name: str
    namespace: str = Field(min_length=1)
    chunk_count: int = Field(ge=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    category: str = DEFAULT_CATEGORY
    file_type: str = "txt"

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        # Older units stored the chunk count under "chunks" and no category.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "chunkCount" not in data and "chunk_count" not in data and isinstance(data.get("chunks"), int):
            data["chunkCount"] = data.pop("chunks")
        if "category" not in data and isinstance(data.get("namespace"), str) and "_" in data["namespace"]:
            data["category"] = data["namespace"].rsplit("_", 1)[0]
        return data

    @classmethod
    def create(
        cls,
        *,
        file_name: str,
        category: str,
        file_type: str,
        chunk_count: int,
        document_id: str | None = None,
    ) -> DocumentRecord:
        """Mint a new record; a fresh id is generated unless *document_id* is given."""
        document_id = document_id or uuid4().hex
        return cls(
            id=document_id,
            file_name=sanitize_file_name(file_name),
            namespace=make_namespace(category, document_id),
            chunk_count=chunk_count,
            category=category,
            file_type=normalize_file_type(file_type),
        )


class ChunkMetadata(_WireModel):
    """Provenance attached to every chunk record."""

    source: str
    chunk_index: int = Field(ge=0)
    category: str = DEFAULT_CATEGORY
    file_type: str = "txt"
    namespace: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if isinstance(data, dict) and "chunkIndex" not in data and "chunk_index" not in data and "chunk" in data:
            data = dict(data)
            data["chunkIndex"] = data.pop("chunk")
        return data


class ChunkRecord(_WireModel):
    """One retrievable unit of a document, with its embedding."""

    id: str
    content: str = Field(min_length=1)
    embedding: list[float] = Field(default_factory=list)
    metadata: ChunkMetadata

    @field_validator("embedding", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def index(self) -> int:
        return self.metadata.chunk_index


class PersistedUnit(_WireModel):
    """Document metadata plus its full chunk set, stored as one object."""

    metadata: DocumentRecord
    chunks: list[ChunkRecord]

    @model_validator(mode="after")
    def _check_consistency(self) -> PersistedUnit:
        doc = self.metadata
        if doc.chunk_count != len(self.chunks):
            raise ValueError(f"chunkCount is {doc.chunk_count} but unit holds {len(self.chunks)} chunks")

        previous = -1
        for chunk in self.chunks:
            meta = chunk.metadata
            if meta.chunk_index <= previous:
                raise ValueError(f"chunk {chunk.id!r} is out of order")
            previous = meta.chunk_index
            if meta.namespace is None:
                meta.namespace = doc.namespace
            elif meta.namespace != doc.namespace:
                raise ValueError(f"chunk {chunk.id!r} belongs to namespace {meta.namespace!r}")
            if meta.category != doc.category or meta.file_type != doc.file_type:
                raise ValueError(f"chunk {chunk.id!r} disagrees with document category/fileType")
        return self

    @property
    def namespace(self) -> str:
        return self.metadata.namespace


class ScoredChunk(BaseModel):
    """A retrieved chunk together with its cosine similarity to the query."""

    content: str
    metadata: ChunkMetadata
    similarity: float

    def short_ref(self) -> str:
        """Return a compact ``[source#chunk]`` reference string."""
        return f"[{self.metadata.source}#{self.metadata.chunk_index}]"

    def to_wire(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "metadata": self.metadata.to_wire(),
            "similarity": self.similarity,
        }

    def __str__(self) -> str:  # noqa: D105
        return f"{self.short_ref()} {self.content[:120]}…"


class DocumentSource(BaseModel):
    """Raw text of one uploaded document plus its labels."""

    raw_text: str
    file_name: str
    category: str = DEFAULT_CATEGORY
    file_type: str = "txt"

    @field_validator("file_name")
    @classmethod
    def _sanitize_name(cls, value: str) -> str:
        return sanitize_file_name(value)

    @field_validator("file_type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        return normalize_file_type(value)

    @field_validator("category")
    @classmethod
    def _default_category(cls, value: str) -> str:
        return value.strip() or DEFAULT_CATEGORY
