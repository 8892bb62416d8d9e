"""Exhaustive cosine-similarity ranking over persisted chunk records."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import numpy as np

from knowledge_rag.errors import DimensionMismatchError
from knowledge_rag.models import ChunkRecord, PersistedUnit, ScoredChunk

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float | None:
    """Return ``dot(a, b) / (|a| * |b|)``, or ``None`` if either norm is zero.

    Raises :class:`DimensionMismatchError` when the lengths differ.  The
    result is not clamped and may be negative.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0 or not np.isfinite(denom):
        return None
    return float(np.dot(va, vb) / denom)


def _candidates(units: Iterable[PersistedUnit], dimension: int) -> list[ChunkRecord]:
    """Flatten *units* into scan order, keeping chunks scoreable at *dimension*."""
    pool: list[ChunkRecord] = []
    missing = mismatched = 0
    for unit in units:
        for chunk in unit.chunks:
            if not chunk.embedding:
                missing += 1
                continue
            if len(chunk.embedding) != dimension:
                mismatched += 1
                logger.warning(
                    "Skipping %s/%s: %s",
                    unit.namespace,
                    chunk.id,
                    DimensionMismatchError(dimension, len(chunk.embedding), key=unit.namespace),
                )
                continue
            pool.append(chunk)
    if missing:
        logger.info("Skipped %d chunks without an embedding", missing)
    if mismatched:
        logger.warning("Skipped %d chunks with mismatched embedding dimension", mismatched)
    return pool


def retrieve(
    query_vector: Sequence[float],
    limit: int = DEFAULT_LIMIT,
    *,
    units: Iterable[PersistedUnit],
) -> list[ScoredChunk]:
    """Rank every chunk in *units* against *query_vector*.

    Parameters
    ----------
    query_vector:
        Embedding of the query.
    limit:
        Maximum number of results.
    units:
        Snapshot of persisted units to scan (typically ``store.load_all()``).

    Returns
    -------
    list[ScoredChunk]
        At most *limit* chunks in non-increasing similarity order.  Equal
        scores keep their scan order.  Chunks without an embedding, with a
        different dimensionality, or with a zero-norm vector are excluded.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    query = np.asarray(query_vector, dtype=np.float64)
    if query.ndim != 1 or query.size == 0:
        raise ValueError("query_vector must be a non-empty one-dimensional sequence")
    query_norm = float(np.linalg.norm(query))
    if query_norm == 0.0 or not np.isfinite(query_norm):
        logger.warning("Query vector has zero or non-finite norm; nothing to rank")
        return []

    pool = _candidates(units, query.size)
    if not pool:
        return []

    matrix = np.asarray([chunk.embedding for chunk in pool], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1)
    scoreable = np.flatnonzero((norms > 0.0) & np.isfinite(norms))
    if scoreable.size < len(pool):
        logger.info("Skipped %d zero-norm chunks", len(pool) - scoreable.size)
    if scoreable.size == 0:
        return []

    scores = (matrix[scoreable] @ query) / (norms[scoreable] * query_norm)
    order = np.argsort(-scores, kind="stable")[:limit]

    results: list[ScoredChunk] = []
    for position in order:
        chunk = pool[scoreable[position]]
        results.append(
            ScoredChunk(
                content=chunk.content,
                metadata=chunk.metadata,
                similarity=float(scores[position]),
            )
        )
    return results
