"""FastAPI application exposing the knowledge base as a REST API."""

from __future__ import annotations

import logging
import shutil
import tempfile
from functools import lru_cache
from pathlib import Path

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from knowledge_rag.config import settings
from knowledge_rag.errors import ErrorKind, IngestionError, ProviderError, StorageUnavailableError
from knowledge_rag.generation.answer import AnswerService
from knowledge_rag.generation.llm import get_llm
from knowledge_rag.ingestion.embedder import Embedder
from knowledge_rag.ingestion.pipeline import IngestionPipeline
from knowledge_rag.models import DEFAULT_CATEGORY
from knowledge_rag.retrieval.retriever import KnowledgeRetriever
from knowledge_rag.storage import DocumentStore, LocalDirectoryRoot

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Knowledge RAG API",
    version="0.1.0",
    description="Upload documents, list them, and ask questions answered from their content.",
)

_STATUS_BY_KIND = {
    ErrorKind.EMPTY_CONTENT: 422,
    ErrorKind.NO_CHUNKS_PROCESSED: 502,
    ErrorKind.PROVIDER_ERROR: 502,
    ErrorKind.WRITE_ERROR: 503,
}


# ── Dependencies ──────────────────────────────────────────────────────
@lru_cache
def get_store() -> DocumentStore:
    """Document store rooted at ``settings.storage_dir``."""
    return DocumentStore(LocalDirectoryRoot(settings.storage_dir))


@lru_cache
def get_embedder() -> Embedder:
    return Embedder.from_settings()


def get_pipeline(
    store: DocumentStore = Depends(get_store),
    embedder: Embedder = Depends(get_embedder),
) -> IngestionPipeline:
    return IngestionPipeline(
        store,
        embedder,
        chunk_size=settings.chunk_size,
        max_workers=settings.embed_max_workers,
    )


def get_answer_service(
    store: DocumentStore = Depends(get_store),
    embedder: Embedder = Depends(get_embedder),
) -> AnswerService:
    retriever = KnowledgeRetriever(store, embedder, default_k=settings.retrieval_limit)
    return AnswerService(retriever, get_llm())


# ── Request / Response schemas ────────────────────────────────────────
class QueryRequest(BaseModel):
    """Incoming question from the user."""

    query: str
    k: int | None = Field(default=None, ge=1)


class QueryResponse(BaseModel):
    """Answer plus the chunks it was built from."""

    answer: str
    sources: list[dict] = []


# ── Error mapping ─────────────────────────────────────────────────────
@app.exception_handler(IngestionError)
async def ingestion_error_handler(_request, exc: IngestionError) -> JSONResponse:
    return JSONResponse(status_code=_STATUS_BY_KIND.get(exc.kind, 500), content=exc.to_dict())


@app.exception_handler(StorageUnavailableError)
async def storage_error_handler(_request, exc: StorageUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"error": str(exc), "kind": exc.kind.value, "retryable": exc.retryable},
    )


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/documents")
def list_documents(store: DocumentStore = Depends(get_store)) -> dict[str, list[dict]]:
    """List every stored document, newest first."""
    records = sorted(store.list_metadata(), key=lambda r: r.created_at, reverse=True)
    return {"documents": [record.to_wire() for record in records]}


@app.post("/documents", status_code=201)
def upload_document(
    file: UploadFile = File(...),
    category: str = Form(DEFAULT_CATEGORY),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> dict:
    """Ingest one uploaded file and return its document record."""
    file_name = file.filename or "upload.txt"
    suffix = Path(file_name).suffix
    with tempfile.TemporaryDirectory(prefix="upload-") as tmp_dir:
        tmp_path = Path(tmp_dir) / f"document{suffix}"
        with tmp_path.open("wb") as fh:
            shutil.copyfileobj(file.file, fh)
        record = pipeline.ingest_file(tmp_path, category, file_name=file_name)
    return {"success": True, "document": record.to_wire()}


@app.post("/query", response_model=QueryResponse)
def query(request: QueryRequest, service: AnswerService = Depends(get_answer_service)) -> QueryResponse:
    """Answer a question from the stored documents."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query is required")
    if request.k is not None:
        service.k = request.k
    try:
        result = service.answer(request.query)
    except ProviderError as exc:
        logger.error("Answer generation failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return QueryResponse(answer=result.answer, sources=[chunk.to_wire() for chunk in result.sources])
