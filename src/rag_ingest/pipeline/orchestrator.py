"""Extraction orchestrator — Load → Chunk → Embed → (Persist) for one request.

:meth:`ExtractionOrchestrator.extract` never raises.  Each step reports into a
:class:`PipelineOutcome`; the outcome is converted into the terminal
:class:`~rag_ingest.models.DocumentExtraction` at the boundary.

Usage::

    from rag_ingest.config import build_context
    from rag_ingest.models import ExtractionRequest, FileType
    from rag_ingest.pipeline import ExtractionOrchestrator

    orchestrator = ExtractionOrchestrator(build_context())
    record = orchestrator.extract(
        ExtractionRequest(source="/data/report.pdf", file_type=FileType.PDF)
    )
    print(record.status, record.total_chunks)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from rag_ingest.config import AppContext
from rag_ingest.ingestion.chunker import TextChunker
from rag_ingest.ingestion.embedder import EmbeddingGenerator
from rag_ingest.ingestion.loader import DocumentLoader
from rag_ingest.models import DocumentChunk, DocumentExtraction, ExtractionRequest
from rag_ingest.retrieval.base import VectorStoreBase
from rag_ingest.retrieval.models import SearchFilter


@dataclass
class PipelineOutcome:
    """Result of running the pipeline steps for one request.

    ``chunks`` holds whatever the last successful step produced; ``error``
    and ``failed_step`` are set when a step raised.
    """

    chunks: list[DocumentChunk] = field(default_factory=list)
    error: BaseException | None = None
    failed_step: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def fail(self, step: str, error: BaseException) -> PipelineOutcome:
        self.failed_step = step
        self.error = error
        return self


class ExtractionOrchestrator:
    """Drive loader, chunker, embedder and vector store for each request.

    Parameters
    ----------
    context:
        Application context shared by every component.
    loader / chunker / embedder / vector_store:
        Components to use; defaults are built from *context*.  The vector
        store is created lazily, only when a request asks for persistence
        or a search is issued.
    """

    def __init__(
        self,
        context: AppContext,
        *,
        loader: DocumentLoader | None = None,
        chunker: TextChunker | None = None,
        embedder: EmbeddingGenerator | None = None,
        vector_store: VectorStoreBase | None = None,
    ) -> None:
        self._context = context
        self._logger = context.get_logger(__name__)
        self.loader = loader or DocumentLoader(context)
        self.chunker = chunker or TextChunker(context)
        self.embedder = embedder or EmbeddingGenerator(
            context, batch_size=context.settings.embedding_batch_size
        )
        self._vector_store = vector_store

    @property
    def vector_store(self) -> VectorStoreBase:
        if self._vector_store is None:
            from rag_ingest.retrieval.chroma_store import ChromaVectorStore

            self._vector_store = ChromaVectorStore(self._context, self.embedder)
        return self._vector_store

    # -- public API -----------------------------------------------------------

    def extract(self, request: ExtractionRequest) -> DocumentExtraction:
        """Run the full pipeline for *request* and return its record.

        Failures of any step are recorded on the returned record
        (``status=failed``, ``error`` set); nothing is raised.
        """
        started = time.monotonic()
        extraction = DocumentExtraction(
            source=request.source,
            file_type=request.file_type.value,
            metadata=request.metadata or None,
        )
        extraction.mark_processing()
        self._logger.info("Starting extraction %s for %s", extraction.id, request.source)

        try:
            outcome = self._run_pipeline(request)
        except Exception as exc:  # pragma: no cover
            outcome = PipelineOutcome().fail("pipeline", exc)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if outcome.succeeded:
            extraction.mark_completed(outcome.chunks, elapsed_ms)
            self._logger.info(
                "Extraction %s completed: %d chunks in %dms",
                extraction.id,
                extraction.total_chunks,
                elapsed_ms,
            )
        else:
            message = str(outcome.error) or type(outcome.error).__name__
            extraction.mark_failed(message, outcome.chunks, elapsed_ms)
            self._logger.error(
                "Extraction %s failed at %s step: %s",
                extraction.id,
                outcome.failed_step,
                outcome.error,
                exc_info=outcome.error,
            )
        return extraction

    def search(
        self,
        query: str,
        k: int = 5,
        filter: SearchFilter | None = None,
    ) -> list[DocumentChunk]:
        """Return at most *k* stored chunks similar to *query*.

        Raises
        ------
        EmbeddingError / VectorStoreError
            Search has no partial-success mode; errors propagate.
        """
        return self.vector_store.similarity_search(query, k=k, filter=filter)

    # -- internals ------------------------------------------------------------

    def _run_pipeline(self, request: ExtractionRequest) -> PipelineOutcome:
        outcome = PipelineOutcome()

        try:
            documents = self.loader.load(
                request.source, request.file_type, strip_html=request.strip_html
            )
        except Exception as exc:
            return outcome.fail("load", exc)

        caller_metadata: dict[str, Any] = {
            "source": request.source,
            "file_type": request.file_type.value,
            **request.metadata,
        }
        try:
            outcome.chunks = self.chunker.create_chunks(
                documents,
                request.chunking_strategy,
                request.chunk_size,
                request.chunk_overlap,
                caller_metadata,
            )
        except Exception as exc:
            return outcome.fail("chunk", exc)

        try:
            outcome.chunks = self.embedder.generate_embeddings(outcome.chunks)
        except Exception as exc:
            return outcome.fail("embed", exc)

        if not request.save_to_vector_store:
            self._logger.info("Skipping vector store persistence as requested")
            return outcome

        try:
            self.vector_store.save_chunks(outcome.chunks)
        except Exception as exc:
            return outcome.fail("persist", exc)
        return outcome
