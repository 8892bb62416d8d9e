"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Storage
    storage_dir: str = Field(
        default="storage/documents",
        description="Directory holding one JSON unit per ingested document.",
    )

    # Chunking / retrieval
    chunk_size: int = Field(default=1000, ge=1, description="Target chunk size in characters")
    retrieval_limit: int = Field(default=5, ge=1, description="Default number of chunks returned")

    # Embedding
    embedding_backend: str = Field(default="huggingface", description="'huggingface' or 'openai'")
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embed_max_attempts: int = Field(default=3, ge=1)
    embed_initial_backoff: float = 1.0
    embed_max_backoff: float = 8.0
    embed_timeout: float = Field(default=30.0, gt=0)
    embed_max_workers: int = Field(default=4, ge=1)

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint for self-hosted serving."
        ),
    )
    llm_temperature: float = 0.3
    llm_max_tokens: int = 800
    assistant_persona: str = Field(
        default="a knowledgeable support assistant for the organization",
        description="Who the assistant is; inserted at the start of every prompt.",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton: import `settings` wherever needed.
settings = Settings()
