"""Ingestion orchestrator — one document from raw text to a persisted unit.

Each document moves through::

    EXTRACTING → CHUNKING → EMBEDDING → PERSISTING → DONE

and lands in ``FAILED`` as soon as a stage cannot produce anything useful.
Losing individual chunks to embedding failures is tolerated; the document
only fails when no chunk at all could be embedded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4

from knowledge_rag.config import settings
from knowledge_rag.errors import (
    EmptyContentError,
    ErrorKind,
    IngestionError,
    IngestionStage,
    NoChunksProcessedError,
    ProviderError,
    WriteError,
)
from knowledge_rag.ingestion.chunker import chunk_text
from knowledge_rag.ingestion.embedder import Embedder
from knowledge_rag.ingestion.loader import ExtractionError, load_source
from knowledge_rag.ingestion.records import DocumentContext, build_chunk_record
from knowledge_rag.models import (
    DEFAULT_CATEGORY,
    ChunkRecord,
    DocumentRecord,
    DocumentSource,
    PersistedUnit,
    make_namespace,
    sanitize_file_name,
)
from knowledge_rag.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

StageCallback = Callable[[str, IngestionStage], None]


@dataclass
class BatchIngestionReport:
    """Outcome of :meth:`IngestionPipeline.ingest_directory`.

    Attributes
    ----------
    documents:
        Records of every file that reached ``DONE``.
    failures:
        File name → the :class:`IngestionError` that stopped it.
    """

    documents: list[DocumentRecord] = field(default_factory=list)
    failures: dict[str, IngestionError] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.documents)

    @property
    def failed(self) -> int:
        return len(self.failures)


class IngestionPipeline:
    """Drives chunker → embedder → record builder → store for one document.

    Parameters
    ----------
    store:
        Where finished units are written.
    embedder:
        Embedding adapter; per-chunk :class:`ProviderError` drops the chunk.
    chunk_size:
        Target chunk size in characters.
    max_workers:
        Upper bound on concurrent embedding calls within one document.
    on_stage:
        Optional ``callback(file_name, stage)`` fired on every transition,
        including the terminal ``DONE`` / ``FAILED``.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: Embedder,
        *,
        chunk_size: int = 1000,
        max_workers: int = 4,
        on_stage: StageCallback | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._store = store
        self._embedder = embedder
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self._on_stage = on_stage

    @classmethod
    def from_settings(cls, store: DocumentStore, embedder: Embedder | None = None) -> IngestionPipeline:
        return cls(
            store,
            embedder or Embedder.from_settings(),
            chunk_size=settings.chunk_size,
            max_workers=settings.embed_max_workers,
        )

    # -- public API -----------------------------------------------------------

    def ingest(self, source: DocumentSource) -> DocumentRecord:
        """Chunk, embed and persist *source*.

        Returns
        -------
        DocumentRecord
            Metadata of the persisted unit; ``chunk_count`` is the number of
            chunks that survived embedding.

        Raises
        ------
        EmptyContentError
            The text is empty or yields no chunks.
        NoChunksProcessedError
            Every chunk's embedding failed.
        IngestionError
            With ``kind=WRITE_ERROR`` when the unit could not be saved.
        """
        self._enter(source.file_name, IngestionStage.EXTRACTING)
        return self._process(source)

    def _process(self, source: DocumentSource) -> DocumentRecord:
        name = source.file_name
        try:
            if not source.raw_text.strip():
                raise EmptyContentError(
                    f"{name} has no text content", stage=IngestionStage.EXTRACTING, file_name=name
                )

            self._enter(name, IngestionStage.CHUNKING)
            chunks = list(chunk_text(source.raw_text, self.chunk_size))
            if not chunks:
                raise EmptyContentError(f"{name} produced no chunks", stage=IngestionStage.CHUNKING, file_name=name)
            logger.info("Split %s (%d chars) into %d chunks", name, len(source.raw_text), len(chunks))

            document_id = uuid4().hex
            context = DocumentContext(
                namespace=make_namespace(source.category, document_id),
                category=source.category,
                file_type=source.file_type,
                source=name,
            )

            self._enter(name, IngestionStage.EMBEDDING)
            records = self._embed_chunks(chunks, context)
            if not records:
                raise NoChunksProcessedError(
                    f"none of the {len(chunks)} chunks of {name} could be embedded", file_name=name
                )

            self._enter(name, IngestionStage.PERSISTING)
            document = DocumentRecord.create(
                file_name=name,
                category=source.category,
                file_type=source.file_type,
                chunk_count=len(records),
                document_id=document_id,
            )
            try:
                self._store.save(PersistedUnit(metadata=document, chunks=records))
            except WriteError as exc:
                raise IngestionError(
                    str(exc), kind=ErrorKind.WRITE_ERROR, stage=IngestionStage.PERSISTING, file_name=name
                ) from exc
        except IngestionError as exc:
            logger.error("Ingestion of %s failed during %s: %s", name, exc.stage.value, exc)
            self._notify(name, IngestionStage.FAILED)
            raise

        self._enter(name, IngestionStage.DONE)
        logger.info(
            "Ingested %s as %s (%d/%d chunks)", name, document.namespace, document.chunk_count, len(chunks)
        )
        return document

    def ingest_file(
        self,
        path: str | Path,
        category: str = DEFAULT_CATEGORY,
        *,
        file_name: str | None = None,
    ) -> DocumentRecord:
        """Extract *path* with the matching loader and ingest it.

        Extraction failures are reported as :class:`EmptyContentError` at
        the ``EXTRACTING`` stage.
        """
        name = sanitize_file_name(file_name or Path(path).name)
        self._enter(name, IngestionStage.EXTRACTING)
        try:
            source = load_source(path, category, file_name=file_name)
        except ExtractionError as exc:
            logger.error("Extraction of %s failed: %s", name, exc)
            self._notify(name, IngestionStage.FAILED)
            raise EmptyContentError(str(exc), stage=IngestionStage.EXTRACTING, file_name=name) from exc
        return self._process(source)

    def ingest_directory(
        self,
        path: str | Path,
        category: str = DEFAULT_CATEGORY,
        *,
        glob: str = "*.pdf",
    ) -> BatchIngestionReport:
        """Ingest every file under *path* matching *glob*, one at a time.

        A failing file is recorded in the report and does not stop the
        remaining ones.
        """
        report = BatchIngestionReport()
        files = sorted(p for p in Path(path).glob(glob) if p.is_file())
        logger.info("Found %d files matching %r in %s", len(files), glob, path)
        for file_path in files:
            try:
                report.documents.append(self.ingest_file(file_path, category))
            except IngestionError as exc:
                report.failures[file_path.name] = exc
        logger.info("Batch ingestion finished: %d succeeded, %d failed", report.succeeded, report.failed)
        return report

    # -- internals ------------------------------------------------------------

    def _embed_chunks(self, chunks: list[str], context: DocumentContext) -> list[ChunkRecord]:
        """Embed *chunks* concurrently; return records of the survivors in index order."""
        embeddings: dict[int, list[float]] = {}
        workers = min(self.max_workers, len(chunks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as pool:
            futures = {pool.submit(self._embedder.embed, text): index for index, text in enumerate(chunks)}
            for future in as_completed(futures):
                index = futures[future]
                try:
                    embeddings[index] = future.result()
                except ProviderError as exc:
                    logger.warning(
                        "Dropping chunk %d/%d of %s: %s", index + 1, len(chunks), context.source, exc
                    )

        return [build_chunk_record(chunks[index], index, context, embeddings[index]) for index in sorted(embeddings)]

    def _enter(self, name: str, stage: IngestionStage) -> None:
        logger.debug("%s → %s", name, stage.value)
        self._notify(name, stage)

    def _notify(self, name: str, stage: IngestionStage) -> None:
        if self._on_stage is not None:
            self._on_stage(name, stage)
