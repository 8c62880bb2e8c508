"""Shared configuration, logging setup, and the application context.

Components never read process-wide state: they receive an :class:`AppContext`
at construction.  Build one with :func:`build_context`, which loads
:class:`Settings`, configures logging, and only then hands out the context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import Field
from pydantic_settings import BaseSettings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_ssl: bool = False
    chroma_tenant: str = "default_tenant"
    chroma_database: str = "default_database"
    chroma_collection: str = "documents"
    chroma_http_timeout: float = Field(
        default=30.0, description="Timeout (seconds) for raw REST calls to Chroma"
    )

    # Embedding
    embedding_provider: str = Field(
        default="huggingface",
        description="One of 'huggingface', 'openai' or 'azure'",
    )
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_batch_size: int = 10
    embedding_max_retries: int = Field(
        default=2, description="Transport-level retries inside the OpenAI/Azure client"
    )
    openai_api_key: str = Field(default="", description="OpenAI or Azure OpenAI API key")
    openai_base_url: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_deployment: str = "text-embedding-3-large"
    azure_openai_api_version: str = "2024-04-01-preview"

    # Chunking
    default_chunk_size: int = 1000
    default_chunk_overlap: int = 200
    token_encoding: str = "cl100k_base"

    # Uploads
    upload_dir: str = "./uploads"
    max_upload_bytes: int = 50 * 1024 * 1024

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def chroma_url(self) -> str:
        scheme = "https" if self.chroma_ssl else "http"
        return f"{scheme}://{self.chroma_host}:{self.chroma_port}"


def configure_logging(settings: Settings) -> None:
    """Install the root handler once, at the level from *settings*."""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


@dataclass(frozen=True)
class AppContext:
    """Explicit carrier for settings and loggers, passed into each component."""

    settings: Settings

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)


def build_context(settings: Settings | None = None) -> AppContext:
    """Create settings (if not given), configure logging, return the context."""
    settings = settings or Settings()
    configure_logging(settings)
    return AppContext(settings=settings)
