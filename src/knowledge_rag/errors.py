"""Typed error taxonomy shared by ingestion, storage and retrieval.

Every failure the core can surface is a :class:`KnowledgeBaseError` carrying
an :class:`ErrorKind`, so callers can branch on the kind instead of parsing
messages.  ``retryable`` tells a caller whether to suggest "try again"
(provider / storage trouble) or "fix the input" (nothing to index).
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    EMPTY_CONTENT = "empty_content"
    PROVIDER_ERROR = "provider_error"
    NO_CHUNKS_PROCESSED = "no_chunks_processed"
    WRITE_ERROR = "write_error"
    CORRUPT_UNIT = "corrupt_unit"
    DIMENSION_MISMATCH = "dimension_mismatch"
    STORAGE_UNAVAILABLE = "storage_unavailable"


_RETRYABLE = frozenset(
    {
        ErrorKind.PROVIDER_ERROR,
        ErrorKind.NO_CHUNKS_PROCESSED,
        ErrorKind.WRITE_ERROR,
        ErrorKind.STORAGE_UNAVAILABLE,
    }
)


class IngestionStage(str, Enum):
    """States of the per-document ingestion state machine."""

    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class KnowledgeBaseError(Exception):
    """Base class for every error raised by the knowledge base core."""

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE


class ProviderError(KnowledgeBaseError):
    """The embedding or answer provider failed after all retries."""

    kind = ErrorKind.PROVIDER_ERROR


class WriteError(KnowledgeBaseError):
    """A persisted unit could not be written."""

    kind = ErrorKind.WRITE_ERROR


class StorageUnavailableError(KnowledgeBaseError):
    """The storage root itself cannot be reached or enumerated."""

    kind = ErrorKind.STORAGE_UNAVAILABLE


class CorruptUnitError(KnowledgeBaseError):
    """A stored unit is unreadable, malformed, or vanished mid-read."""

    kind = ErrorKind.CORRUPT_UNIT

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class DimensionMismatchError(CorruptUnitError):
    """A candidate embedding's length disagrees with the query's."""

    kind = ErrorKind.DIMENSION_MISMATCH

    def __init__(self, expected: int, actual: int, *, key: str | None = None) -> None:
        super().__init__(f"expected dimension {expected}, got {actual}", key=key)
        self.expected = expected
        self.actual = actual


class IngestionError(KnowledgeBaseError):
    """A document could not be ingested.

    Parameters
    ----------
    message:
        Human-readable description.
    kind:
        Which taxonomy entry caused the failure.
    stage:
        The stage that was running when ingestion failed.  The document's
        terminal state is always :attr:`IngestionStage.FAILED`.
    file_name:
        Source file the failure relates to, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        stage: IngestionStage,
        file_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.stage = stage
        self.file_name = file_name

    @property
    def state(self) -> IngestionStage:
        return IngestionStage.FAILED

    def to_dict(self) -> dict[str, object]:
        return {
            "error": str(self),
            "kind": self.kind.value,
            "stage": self.stage.value,
            "state": self.state.value,
            "retryable": self.retryable,
            "file_name": self.file_name,
        }


class EmptyContentError(IngestionError):
    """Nothing to chunk: extraction failed or produced only whitespace."""

    def __init__(self, message: str, *, stage: IngestionStage, file_name: str | None = None) -> None:
        super().__init__(message, kind=ErrorKind.EMPTY_CONTENT, stage=stage, file_name=file_name)


class NoChunksProcessedError(IngestionError):
    """Every chunk's embedding failed."""

    def __init__(self, message: str, *, file_name: str | None = None) -> None:
        super().__init__(
            message,
            kind=ErrorKind.NO_CHUNKS_PROCESSED,
            stage=IngestionStage.EMBEDDING,
            file_name=file_name,
        )
