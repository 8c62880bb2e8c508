"""Unit tests for ExtractionOrchestrator."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from rag_ingest.config import AppContext
from rag_ingest.errors import UnsupportedFormatError, VectorStoreError
from rag_ingest.ingestion.embedder import EmbeddingGenerator
from rag_ingest.models import DocumentChunk, ExtractionRequest, ExtractionStatus, FileType
from rag_ingest.pipeline import ExtractionOrchestrator
from rag_ingest.retrieval.base import VectorStoreBase
from rag_ingest.retrieval.models import SearchFilter

PARAGRAPHS = "\n\n".join(f"Paragraph {i} talks about topic {i}." for i in range(12))


class FakeVectorStore(VectorStoreBase):
    """In-memory store that records what it was asked to do."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        super().__init__("test-collection")
        self.saved: list[DocumentChunk] = []
        self.save_calls = 0
        self.fail_with = fail_with
        self.last_filter: SearchFilter | None = None

    def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        self.save_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.saved.extend(chunks)

    def similarity_search(
        self,
        query: str,
        *,
        k: int = 5,
        filter: SearchFilter | None = None,
    ) -> list[DocumentChunk]:
        self.last_filter = filter
        return self.saved[:k]

    def health_check(self) -> bool:
        return True


@pytest.fixture()
def store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture()
def orchestrator(
    context: AppContext, fake_embeddings, store: FakeVectorStore
) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(
        context,
        embedder=EmbeddingGenerator(context, fake_embeddings),
        vector_store=store,
    )


@pytest.fixture()
def text_file(tmp_path: Path) -> Path:
    path = tmp_path / "handbook.txt"
    path.write_text(PARAGRAPHS, encoding="utf-8")
    return path


def _request(path: Path, **overrides) -> ExtractionRequest:
    params = {
        "source": str(path),
        "file_type": FileType.TEXT,
        "chunk_size": 80,
        "chunk_overlap": 10,
    }
    params.update(overrides)
    return ExtractionRequest(**params)


class TestExtract:
    def test_success_completes_and_persists(
        self, orchestrator: ExtractionOrchestrator, store: FakeVectorStore, text_file: Path
    ) -> None:
        record = orchestrator.extract(_request(text_file, metadata={"department": "hr"}))

        assert record.status is ExtractionStatus.COMPLETED
        assert record.error is None
        assert record.total_chunks == len(record.chunks) > 1
        assert record.processing_time_ms is not None
        assert all(c.has_embedding for c in record.chunks)
        assert store.saved == record.chunks
        assert record.metadata == {"department": "hr"}

    def test_chunk_metadata_carries_request_context(
        self, orchestrator: ExtractionOrchestrator, text_file: Path
    ) -> None:
        record = orchestrator.extract(_request(text_file, metadata={"author": "ops"}))

        meta = record.chunks[0].metadata
        assert meta["source"] == str(text_file)
        assert meta["file_type"] == "text"
        assert meta["author"] == "ops"
        assert meta["chunk_index"] == 0
        assert "document_id" in meta

    def test_persistence_can_be_skipped(
        self, orchestrator: ExtractionOrchestrator, store: FakeVectorStore, text_file: Path
    ) -> None:
        record = orchestrator.extract(_request(text_file, save_to_vector_store=False))

        assert record.status is ExtractionStatus.COMPLETED
        assert all(c.has_embedding for c in record.chunks)
        assert store.save_calls == 0

    def test_missing_file_fails_without_touching_store(
        self, orchestrator: ExtractionOrchestrator, store: FakeVectorStore, tmp_path: Path
    ) -> None:
        record = orchestrator.extract(_request(tmp_path / "nope.txt"))

        assert record.status is ExtractionStatus.FAILED
        assert record.total_chunks == 0
        assert "File not found" in record.error
        assert store.save_calls == 0

    def test_invalid_chunking_fails(
        self, orchestrator: ExtractionOrchestrator, text_file: Path
    ) -> None:
        record = orchestrator.extract(_request(text_file, chunk_size=50, chunk_overlap=50))

        assert record.status is ExtractionStatus.FAILED
        assert "chunk_overlap" in record.error

    def test_embedding_failure_keeps_chunks_unembedded(
        self, context: AppContext, embeddings_cls, store: FakeVectorStore, text_file: Path
    ) -> None:
        orchestrator = ExtractionOrchestrator(
            context,
            embedder=EmbeddingGenerator(context, embeddings_cls(fail_on_call=1)),
            vector_store=store,
        )

        record = orchestrator.extract(_request(text_file))

        assert record.status is ExtractionStatus.FAILED
        assert "Failed to generate embeddings" in record.error
        assert record.total_chunks == len(record.chunks) > 0
        assert not any(c.has_embedding for c in record.chunks)
        assert store.save_calls == 0

    def test_persist_failure_marks_failed(
        self, context: AppContext, fake_embeddings, text_file: Path
    ) -> None:
        store = FakeVectorStore(fail_with=VectorStoreError("All write endpoints failed"))
        orchestrator = ExtractionOrchestrator(
            context,
            embedder=EmbeddingGenerator(context, fake_embeddings),
            vector_store=store,
        )

        record = orchestrator.extract(_request(text_file))

        assert record.status is ExtractionStatus.FAILED
        assert record.error == "All write endpoints failed"
        assert store.save_calls == 1

    def test_unexpected_error_never_escapes(
        self, context: AppContext, store: FakeVectorStore, text_file: Path
    ) -> None:
        loader = MagicMock()
        loader.load.side_effect = KeyError()
        orchestrator = ExtractionOrchestrator(context, loader=loader, vector_store=store)

        record = orchestrator.extract(_request(text_file))

        assert record.status is ExtractionStatus.FAILED
        assert record.error

    def test_unsupported_format_from_loader_marks_failed(
        self, context: AppContext, store: FakeVectorStore, text_file: Path
    ) -> None:
        loader = MagicMock()
        loader.load.side_effect = UnsupportedFormatError("Unsupported file type: 'pptx'")
        orchestrator = ExtractionOrchestrator(context, loader=loader, vector_store=store)

        record = orchestrator.extract(_request(text_file))

        assert record.status is ExtractionStatus.FAILED
        assert record.error == "Unsupported file type: 'pptx'"
        assert record.chunks == []
        assert store.save_calls == 0

    def test_unknown_tag_rejected_when_request_is_built(self, text_file: Path) -> None:
        with pytest.raises(ValidationError):
            _request(text_file, file_type="pptx")

    def test_strip_html_is_forwarded(
        self, orchestrator: ExtractionOrchestrator, tmp_path: Path
    ) -> None:
        path = tmp_path / "page.html"
        path.write_text("<html><body><p>Visible words</p></body></html>", encoding="utf-8")

        record = orchestrator.extract(_request(path, file_type="html", strip_html=True))

        assert [c.content for c in record.chunks] == ["Visible words"]


class TestSearch:
    def test_search_delegates_to_store(
        self, orchestrator: ExtractionOrchestrator, store: FakeVectorStore, text_file: Path
    ) -> None:
        orchestrator.extract(_request(text_file))

        results = orchestrator.search("topic 3", k=2, filter={"file_type": "text"})

        assert len(results) == 2
        assert store.last_filter == {"file_type": "text"}
