"""Unit tests for the domain models and the extraction status lifecycle."""

from __future__ import annotations

import pytest

from rag_ingest.models import (
    DocumentChunk,
    DocumentExtraction,
    ExtractionRequest,
    ExtractionStatus,
    FileType,
)


class TestFileType:
    def test_legacy_alias_maps_to_spreadsheet(self) -> None:
        assert FileType("excel") is FileType.SPREADSHEET
        assert FileType("CSV") is FileType.SPREADSHEET

    def test_unknown_value_raises(self) -> None:
        with pytest.raises(ValueError):
            FileType("docx")

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("report.PDF", FileType.PDF),
            ("budget.xlsx", FileType.SPREADSHEET),
            ("rows.csv", FileType.SPREADSHEET),
            ("notes.md", FileType.TEXT),
            ("page.htm", FileType.HTML),
        ],
    )
    def test_from_filename(self, filename: str, expected: FileType) -> None:
        assert FileType.from_filename(filename) is expected

    def test_from_filename_rejects_unknown_extension(self) -> None:
        with pytest.raises(ValueError, match="Unsupported file extension"):
            FileType.from_filename("archive.zip")


class TestDocumentChunk:
    def test_ids_are_unique(self) -> None:
        a = DocumentChunk(content="x")
        b = DocumentChunk(content="x")
        assert a.id != b.id

    def test_attach_embedding_refreshes_updated_at(self) -> None:
        chunk = DocumentChunk(content="x")
        before = chunk.updated_at
        assert not chunk.has_embedding

        chunk.attach_embedding([0.1, 0.2])

        assert chunk.has_embedding
        assert chunk.embedding == [0.1, 0.2]
        assert chunk.updated_at >= before


class TestDocumentExtraction:
    def _record(self) -> DocumentExtraction:
        return DocumentExtraction(source="/tmp/a.txt", file_type="text")

    def test_starts_pending(self) -> None:
        record = self._record()
        assert record.status is ExtractionStatus.PENDING
        assert record.total_chunks == 0
        assert record.error is None

    def test_completed_sets_count_and_time(self) -> None:
        record = self._record()
        record.mark_processing()
        record.mark_completed([DocumentChunk(content="a"), DocumentChunk(content="b")], 12)

        assert record.status is ExtractionStatus.COMPLETED
        assert record.status.is_terminal
        assert record.total_chunks == 2
        assert record.processing_time_ms == 12

    def test_failed_always_has_error_text(self) -> None:
        record = self._record()
        record.mark_processing()
        record.mark_failed("", [], 3)

        assert record.status is ExtractionStatus.FAILED
        assert record.error

    def test_cannot_leave_terminal_state(self) -> None:
        record = self._record()
        record.mark_processing()
        record.mark_completed([], 1)
        with pytest.raises(ValueError, match="Invalid extraction transition"):
            record.mark_failed("late", [], 2)

    def test_cannot_skip_processing(self) -> None:
        with pytest.raises(ValueError):
            self._record().mark_completed([], 0)


def test_extraction_request_defaults() -> None:
    request = ExtractionRequest(source="/data/a.pdf", file_type="pdf")
    assert request.file_type is FileType.PDF
    assert request.chunking_strategy == "recursive"
    assert request.chunk_size == 1000
    assert request.chunk_overlap == 200
    assert request.save_to_vector_store is True
    assert request.metadata == {}
