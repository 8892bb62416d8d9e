"""Embedding adapter — retries, timeouts and output validation around a provider.

The provider itself is external (a sentence-transformer, the OpenAI API …).
:class:`Embedder` is what the rest of the core talks to: it bounds every
call with a timeout, retries transient failures with exponential backoff
and turns the final failure into a :class:`~knowledge_rag.errors.ProviderError`.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from knowledge_rag.config import settings
from knowledge_rag.errors import ProviderError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that maps a piece of text to a fixed-length vector."""

    def embed(self, text: str) -> Sequence[float]: ...


class LangChainEmbeddingProvider:
    """Adapts a LangChain ``Embeddings`` object to :class:`EmbeddingProvider`."""

    def __init__(self, embeddings: Embeddings) -> None:
        self._embeddings = embeddings

    def embed(self, text: str) -> list[float]:
        return self._embeddings.embed_query(text)


def get_embedding_provider() -> LangChainEmbeddingProvider:
    """Return the provider configured by ``settings.embedding_backend``."""
    backend = settings.embedding_backend.lower()
    if backend == "openai":
        from langchain_openai import OpenAIEmbeddings

        logger.info("Using OpenAI embeddings model=%s", settings.embedding_model)
        return LangChainEmbeddingProvider(
            OpenAIEmbeddings(
                model=settings.embedding_model,
                api_key=settings.openai_api_key or None,
                timeout=settings.embed_timeout,
            )
        )
    if backend == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        logger.info("Using HuggingFace embeddings model=%s", settings.embedding_model)
        return LangChainEmbeddingProvider(HuggingFaceEmbeddings(model_name=settings.embedding_model))
    raise ValueError(f"Unsupported embedding backend: {settings.embedding_backend!r}")


class EmbeddingTimeout(Exception):
    """A single provider call did not return within the configured timeout."""


class Embedder:
    """Resilient front for an :class:`EmbeddingProvider`.

    Parameters
    ----------
    provider:
        The external embedding provider.
    max_attempts:
        Total attempts per text, including the first one.
    initial_backoff / max_backoff:
        Exponential backoff bounds in seconds (``initial * 2**n``, capped).
    timeout:
        Per-attempt timeout in seconds; ``None`` disables it.  An expired
        attempt counts as a failed one.
    sleep:
        Sleep function used between attempts (tests pass a no-op).
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        *,
        max_attempts: int = 3,
        initial_backoff: float = 1.0,
        max_backoff: float = 8.0,
        timeout: float | None = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._provider = provider
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.timeout = timeout
        self._sleep = sleep
        self._dimension: int | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, provider: EmbeddingProvider | None = None) -> Embedder:
        return cls(
            provider or get_embedding_provider(),
            max_attempts=settings.embed_max_attempts,
            initial_backoff=settings.embed_initial_backoff,
            max_backoff=settings.embed_max_backoff,
            timeout=settings.embed_timeout,
        )

    @property
    def dimension(self) -> int | None:
        """Dimensionality observed on the first successful call, if any."""
        return self._dimension

    def embed(self, text: str) -> list[float]:
        """Embed *text*, retrying transient failures.

        Raises
        ------
        ProviderError
            When every attempt failed, or the provider returned a vector
            that is empty, non-finite, or of a different dimensionality
            than earlier calls.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_backoff, max=self.max_backoff),
            retry=retry_if_exception_type(Exception),
            sleep=self._sleep,
            before_sleep=lambda state: logger.warning(
                "Embedding attempt %d/%d failed: %s",
                state.attempt_number,
                self.max_attempts,
                state.outcome.exception() if state.outcome else "unknown",
            ),
        )
        try:
            raw = retrying(self._call_provider, text)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            raise ProviderError(f"embedding failed after {self.max_attempts} attempts: {last}") from last

        return self._validate(raw)

    # -- internals ------------------------------------------------------------

    def _call_provider(self, text: str) -> Sequence[float]:
        if self.timeout is None:
            return self._provider.embed(text)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="embed")
        try:
            future = pool.submit(self._provider.embed, text)
            try:
                return future.result(timeout=self.timeout)
            except FutureTimeoutError:
                future.cancel()
                raise EmbeddingTimeout(f"provider did not answer within {self.timeout}s") from None
        finally:
            pool.shutdown(wait=False)

    def _validate(self, raw: Sequence[float]) -> list[float]:
        try:
            vector = [float(x) for x in raw]
        except (TypeError, ValueError) as exc:
            raise ProviderError(f"provider returned a non-numeric embedding: {exc}") from exc
        if not vector:
            raise ProviderError("provider returned an empty embedding")
        if not all(math.isfinite(x) for x in vector):
            raise ProviderError("provider returned a non-finite embedding")

        with self._lock:
            if self._dimension is None:
                self._dimension = len(vector)
            elif len(vector) != self._dimension:
                raise ProviderError(
                    f"provider returned dimension {len(vector)}, expected {self._dimension}"
                )
        return vector
