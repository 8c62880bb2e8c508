"""Domain models for chunks, extraction records, and requests."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class FileType(str, Enum):
    """Closed set of source formats the loader understands."""

    PDF = "pdf"
    SPREADSHEET = "spreadsheet"
    TEXT = "text"
    HTML = "html"

    @classmethod
    def _missing_(cls, value: object) -> FileType | None:
        # Older clients send "excel".
        if isinstance(value, str) and value.lower() in ("excel", "xlsx", "xls", "csv"):
            return cls.SPREADSHEET
        return None

    @classmethod
    def from_filename(cls, filename: str) -> FileType:
        """Infer the format from a file extension.

        Raises
        ------
        ValueError
            If the extension is not supported.
        """
        suffix = Path(filename).suffix.lower()
        try:
            return _EXTENSIONS[suffix]
        except KeyError:
            raise ValueError(f"Unsupported file extension: {suffix or filename!r}") from None


_EXTENSIONS: dict[str, FileType] = {
    ".pdf": FileType.PDF,
    ".xlsx": FileType.SPREADSHEET,
    ".xls": FileType.SPREADSHEET,
    ".csv": FileType.SPREADSHEET,
    ".txt": FileType.TEXT,
    ".md": FileType.TEXT,
    ".html": FileType.HTML,
    ".htm": FileType.HTML,
}

SUPPORTED_EXTENSIONS = tuple(_EXTENSIONS)


class ChunkingStrategy(str, Enum):
    RECURSIVE = "recursive"
    TOKEN = "token"
    CHARACTER = "character"


class ExtractionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExtractionStatus.COMPLETED, ExtractionStatus.FAILED)


_TRANSITIONS: dict[ExtractionStatus, set[ExtractionStatus]] = {
    ExtractionStatus.PENDING: {ExtractionStatus.PROCESSING},
    ExtractionStatus.PROCESSING: {ExtractionStatus.COMPLETED, ExtractionStatus.FAILED},
    ExtractionStatus.COMPLETED: set(),
    ExtractionStatus.FAILED: set(),
}


class DocumentChunk(BaseModel):
    """A bounded fragment of a document's text, the unit of embedding and storage.

    Attributes
    ----------
    id:
        Freshly generated unique identifier (unrelated to ``chunk_index``).
    content:
        The chunk text.
    metadata:
        Loader metadata merged with caller metadata, ``chunk_index`` and
        ``document_id``.
    embedding:
        Vector attached by the embedding generator, ``None`` until then.
    chunk_index:
        Zero-based position among the chunks of the originating document.
    """

    id: str = Field(default_factory=_new_id)
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None
    source: str = "unknown"
    file_type: str = "unknown"
    chunk_index: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def attach_embedding(self, embedding: list[float]) -> None:
        self.embedding = list(embedding)
        self.updated_at = _utcnow()


class DocumentExtraction(BaseModel):
    """The record produced by one ingestion request."""

    id: str = Field(default_factory=_new_id)
    source: str
    file_type: str
    status: ExtractionStatus = ExtractionStatus.PENDING
    total_chunks: int = 0
    chunks: list[DocumentChunk] = Field(default_factory=list)
    processing_time_ms: int | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def _transition(self, status: ExtractionStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(f"Invalid extraction transition {self.status.value} -> {status.value}")
        self.status = status
        self.updated_at = _utcnow()

    def mark_processing(self) -> None:
        self._transition(ExtractionStatus.PROCESSING)

    def mark_completed(self, chunks: list[DocumentChunk], elapsed_ms: int) -> None:
        self.chunks = list(chunks)
        self.total_chunks = len(self.chunks)
        self.processing_time_ms = elapsed_ms
        self._transition(ExtractionStatus.COMPLETED)

    def mark_failed(self, error: str, chunks: list[DocumentChunk], elapsed_ms: int) -> None:
        self.chunks = list(chunks)
        self.total_chunks = len(self.chunks)
        self.error = error or "Unknown error"
        self.processing_time_ms = elapsed_ms
        self._transition(ExtractionStatus.FAILED)


class ExtractionRequest(BaseModel):
    """Parameters of one ``extract`` call.

    ``chunking_strategy`` is kept as a plain string so that unknown
    strategies reach the chunker, which falls back to ``recursive``.
    Size and overlap are validated by the chunker, not here.
    """

    source: str
    file_type: FileType
    chunking_strategy: str = ChunkingStrategy.RECURSIVE.value
    chunk_size: int = 1000
    chunk_overlap: int = 200
    metadata: dict[str, Any] = Field(default_factory=dict)
    save_to_vector_store: bool = True
    strip_html: bool = False
