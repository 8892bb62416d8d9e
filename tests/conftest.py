"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import re
import threading

import pytest

from knowledge_rag.ingestion.embedder import Embedder
from knowledge_rag.ingestion.pipeline import IngestionPipeline
from knowledge_rag.storage import DocumentStore, InMemoryRoot

DIM = 16


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class HashingProvider:
    """Deterministic bag-of-words embedding: each token bumps one bucket."""

    def __init__(self, dim: int = DIM) -> None:
        self.dim = dim
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
        vector = [0.0] * self.dim
        for token in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dim
            vector[bucket] += 1.0
        return vector


class FailingProvider(HashingProvider):
    """Fails every call whose text contains one of *poison* substrings."""

    def __init__(self, *poison: str, dim: int = DIM) -> None:
        super().__init__(dim)
        self.poison = poison

    def embed(self, text: str) -> list[float]:
        if any(p in text for p in self.poison):
            with self._lock:
                self.calls.append(text)
            raise ConnectionError("provider unavailable")
        return super().embed(text)


@pytest.fixture()
def provider() -> HashingProvider:
    return HashingProvider()


@pytest.fixture()
def embedder(provider: HashingProvider) -> Embedder:
    return Embedder(provider, max_attempts=2, timeout=None, sleep=lambda _: None)


@pytest.fixture()
def root() -> InMemoryRoot:
    return InMemoryRoot()


@pytest.fixture()
def store(root: InMemoryRoot) -> DocumentStore:
    return DocumentStore(root)


@pytest.fixture()
def pipeline(store: DocumentStore, embedder: Embedder) -> IngestionPipeline:
    return IngestionPipeline(store, embedder, chunk_size=60, max_workers=3)
