"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` to a self-hosted
   server (vLLM, llama.cpp server …) exposing ``/v1/chat/completions``;
   ``ChatOpenAI`` works unchanged.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from knowledge_rag.config import settings

logger = logging.getLogger(__name__)


def get_llm(temperature: float | None = None) -> ChatOpenAI:
    """Return the configured chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    endpoint instead of the OpenAI cloud API.  A dummy API key
    (``"EMPTY"``) is used because self-hosted servers rarely require one.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature if temperature is None else temperature,
        "max_tokens": settings.llm_max_tokens,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # LangChain requires a non-empty value even when the server ignores it.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)
