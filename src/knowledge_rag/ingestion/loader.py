"""Text extraction — thin wrappers around LangChain document loaders."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from langchain_community.document_loaders import PyPDFLoader, TextLoader

from knowledge_rag.models import DEFAULT_CATEGORY, DocumentSource, normalize_file_type

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)

TEXT_FILE_TYPES = frozenset({"txt", "md", "markdown", "csv", "json", "html", "htm", "rst"})


class ExtractionError(Exception):
    """The loader could not obtain text from a file."""


def _join_pages(documents: list[Document]) -> str:
    return "\n\n".join(doc.page_content for doc in documents if doc.page_content)


def load_pdf(path: str | Path) -> str:
    """Extract the text of every page of a PDF, pages separated by a blank line."""
    return _join_pages(PyPDFLoader(str(path)).load())


def load_text(path: str | Path) -> str:
    """Read a plain-text file, letting the loader detect the encoding."""
    return _join_pages(TextLoader(str(path), autodetect_encoding=True).load())


def extract_text(path: str | Path) -> str:
    """Return the text content of *path*, picking a loader by extension.

    Raises
    ------
    ExtractionError
        When the file is missing, empty, or the loader fails.
    """
    path = Path(path)
    if not path.is_file():
        raise ExtractionError(f"{path} does not exist or is not a file")
    if path.stat().st_size == 0:
        raise ExtractionError(f"{path} is empty (0 bytes)")

    file_type = normalize_file_type(path.suffix or path.name)
    try:
        if file_type == "pdf":
            text = load_pdf(path)
        else:
            if file_type not in TEXT_FILE_TYPES:
                logger.info("Unknown file type %r for %s; reading as plain text", file_type, path.name)
            text = load_text(path)
    except Exception as exc:
        raise ExtractionError(f"failed to extract text from {path.name}: {exc}") from exc

    logger.info("Extracted %d characters from %s", len(text), path.name)
    return text


def load_source(path: str | Path, category: str = DEFAULT_CATEGORY, *, file_name: str | None = None) -> DocumentSource:
    """Extract *path* into a :class:`DocumentSource` ready for ingestion.

    *file_name* overrides the name recorded for the document (useful when
    *path* is a temporary upload location).
    """
    path = Path(path)
    name = file_name or path.name
    return DocumentSource(
        raw_text=extract_text(path),
        file_name=name,
        category=category,
        file_type=Path(name).suffix or path.suffix or "txt",
    )
