"""Batched embedding generation on top of a LangChain ``Embeddings`` provider."""

from __future__ import annotations

import logging
import time

from langchain_core.embeddings import Embeddings

from rag_ingest.config import AppContext, Settings
from rag_ingest.errors import EmbeddingError
from rag_ingest.models import DocumentChunk

EMBEDDING_BATCH_SIZE = 10

logger = logging.getLogger(__name__)


def build_embeddings(settings: Settings) -> Embeddings:
    """Return the embedding provider selected by ``settings.embedding_provider``.

    Provider packages are imported lazily so that only the selected one has
    to be importable.
    """
    provider = settings.embedding_provider.lower()
    if provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)

    if provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict = {
            "model": settings.embedding_model,
            "api_key": settings.openai_api_key,
            "chunk_size": settings.embedding_batch_size,
            "max_retries": settings.embedding_max_retries,
        }
        if settings.openai_base_url:
            kwargs["base_url"] = settings.openai_base_url
        return OpenAIEmbeddings(**kwargs)

    if provider == "azure":
        from langchain_openai import AzureOpenAIEmbeddings

        if not settings.openai_api_key or not settings.azure_openai_endpoint:
            raise EmbeddingError(
                "Incomplete Azure OpenAI configuration: api key and endpoint are required"
            )
        logger.info(
            "Using Azure OpenAI deployment %s at %s",
            settings.azure_openai_deployment,
            settings.azure_openai_endpoint,
        )
        return AzureOpenAIEmbeddings(
            azure_endpoint=settings.azure_openai_endpoint,
            azure_deployment=settings.azure_openai_deployment,
            model=settings.azure_openai_deployment,
            api_key=settings.openai_api_key,
            api_version=settings.azure_openai_api_version,
            chunk_size=settings.embedding_batch_size,
            max_retries=settings.embedding_max_retries,
        )

    raise EmbeddingError(f"Unsupported embedding provider: {settings.embedding_provider!r}")


class EmbeddingGenerator:
    """Attach embedding vectors to chunks, one provider call per batch.

    Parameters
    ----------
    context:
        Application context.
    embeddings:
        Provider to use.  When *None*, one is built from the settings on
        first use.
    batch_size:
        Maximum number of texts per provider call.
    """

    def __init__(
        self,
        context: AppContext,
        embeddings: Embeddings | None = None,
        *,
        batch_size: int = EMBEDDING_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size ({batch_size}) must be > 0")
        self._settings = context.settings
        self._logger = context.get_logger(__name__)
        self._embeddings = embeddings
        self.batch_size = batch_size

    @property
    def provider(self) -> Embeddings:
        if self._embeddings is None:
            self._embeddings = build_embeddings(self._settings)
        return self._embeddings

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in order, ``ceil(len(texts) / batch_size)`` calls.

        Raises
        ------
        EmbeddingError
            On the first failing batch; nothing is returned for earlier ones.
        """
        vectors: list[list[float]] = []
        t0 = time.monotonic()
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                result = self.provider.embed_documents(batch)
            except EmbeddingError:
                raise
            except Exception as exc:
                self._logger.error("Embedding batch starting at %d failed: %s", start, exc)
                raise EmbeddingError(f"Failed to generate embeddings: {exc}") from exc
            if len(result) != len(batch):
                raise EmbeddingError(
                    f"Embedding provider returned {len(result)} vectors for {len(batch)} texts"
                )
            vectors.extend(result)
            self._logger.info("Embedded %d / %d texts", len(vectors), len(texts))

        if texts:
            self._logger.info(
                "Embedding complete: %d vectors in %.1fs", len(vectors), time.monotonic() - t0
            )
        return vectors

    def generate_embeddings(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Attach an embedding to every chunk and return the same chunks.

        Vectors are attached only after every batch succeeded.
        """
        self._logger.info("Generating embeddings for %d chunks", len(chunks))
        vectors = self.embed_texts([chunk.content for chunk in chunks])
        for chunk, vector in zip(chunks, vectors):
            chunk.attach_embedding(vector)
        return chunks

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        try:
            return self.provider.embed_query(text)
        except EmbeddingError:
            raise
        except Exception as exc:
            self._logger.error("Query embedding failed: %s", exc)
            raise EmbeddingError(f"Failed to generate query embedding: {exc}") from exc

    def as_langchain_embeddings(
        self, known: dict[str, list[float]] | None = None
    ) -> Embeddings:
        """Expose this generator through LangChain's ``Embeddings`` protocol.

        Texts found in *known* reuse their precomputed vector; the provider
        is only called for the rest.  Newly computed vectors are added to
        *known* in place.
        """
        return _GeneratorEmbeddings(self, {} if known is None else known)


class _GeneratorEmbeddings(Embeddings):
    """Adapter that satisfies LangChain's embeddings protocol."""

    def __init__(self, generator: EmbeddingGenerator, known: dict[str, list[float]]) -> None:
        self._generator = generator
        self._known = known

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        missing = list(dict.fromkeys(t for t in texts if t not in self._known))
        if missing:
            self._known.update(zip(missing, self._generator.embed_texts(missing)))
        return [self._known[t] for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._generator.embed_query(text)
