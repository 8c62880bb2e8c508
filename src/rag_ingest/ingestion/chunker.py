"""Text chunking strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import uuid4

from langchain_text_splitters import (
    CharacterTextSplitter,
    RecursiveCharacterTextSplitter,
    TextSplitter,
    TokenTextSplitter,
)

from rag_ingest.config import AppContext
from rag_ingest.errors import ChunkingError
from rag_ingest.models import ChunkingStrategy, DocumentChunk

if TYPE_CHECKING:
    from langchain_core.documents import Document

RECURSIVE_SEPARATORS = ["\n\n", "\n", " ", ""]
CHARACTER_SEPARATOR = "\n"


class TextChunker:
    """Split loaded documents into overlapping :class:`DocumentChunk` objects."""

    def __init__(self, context: AppContext) -> None:
        self._settings = context.settings
        self._logger = context.get_logger(__name__)

    def create_chunks(
        self,
        documents: list[Document],
        strategy: ChunkingStrategy | str = ChunkingStrategy.RECURSIVE,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """Split *documents* into chunks ready for embedding.

        Parameters
        ----------
        documents:
            Source documents produced by the loader.
        strategy:
            Splitting strategy; unknown values fall back to ``recursive``.
        chunk_size:
            Maximum chunk length (characters, or tokens for ``token``).
        chunk_overlap:
            Overlap between consecutive chunks of the same document.
        metadata:
            Caller metadata merged into every chunk.

        Returns
        -------
        list[DocumentChunk]
            Chunks in document order; ``chunk_index`` restarts at 0 for
            each document.
        """
        chunk_size = self._settings.default_chunk_size if chunk_size is None else chunk_size
        chunk_overlap = (
            self._settings.default_chunk_overlap if chunk_overlap is None else chunk_overlap
        )
        _validate(chunk_size, chunk_overlap)
        metadata = metadata or {}
        kind = self._resolve_strategy(strategy)
        splitter = self._build_splitter(kind, chunk_size, chunk_overlap)
        self._logger.info(
            "Chunking %d document(s) with strategy=%s size=%d overlap=%d",
            len(documents),
            kind.value,
            chunk_size,
            chunk_overlap,
        )

        chunks: list[DocumentChunk] = []
        for document in documents:
            document_id = str(document.metadata.get("id") or uuid4())
            pieces = splitter.split_text(document.page_content)
            for index, piece in enumerate(pieces):
                chunk_meta = {
                    **document.metadata,
                    **metadata,
                    "chunk_index": index,
                    "document_id": document_id,
                }
                chunks.append(
                    DocumentChunk(
                        content=piece,
                        metadata=chunk_meta,
                        source=str(chunk_meta.get("source") or "unknown"),
                        file_type=str(chunk_meta.get("file_type") or "unknown"),
                        chunk_index=index,
                    )
                )

        self._logger.info("Created %d chunks", len(chunks))
        return chunks

    def _resolve_strategy(self, strategy: ChunkingStrategy | str) -> ChunkingStrategy:
        try:
            return ChunkingStrategy(strategy)
        except ValueError:
            self._logger.warning(
                "Unknown chunking strategy %r, falling back to %s",
                strategy,
                ChunkingStrategy.RECURSIVE.value,
            )
            return ChunkingStrategy.RECURSIVE

    def _build_splitter(
        self, strategy: ChunkingStrategy, chunk_size: int, chunk_overlap: int
    ) -> TextSplitter:
        if strategy is ChunkingStrategy.TOKEN:
            return TokenTextSplitter(
                encoding_name=self._settings.token_encoding,
                chunk_size=chunk_size,
                chunk_overlap=chunk_overlap,
            )
        if strategy is ChunkingStrategy.CHARACTER:
            return CharacterTextSplitter(
                separator=CHARACTER_SEPARATOR,
                chunk_size=chunk_size,
                chunk_overlap=chunk_overlap,
                length_function=len,
            )
        return RecursiveCharacterTextSplitter(
            separators=RECURSIVE_SEPARATORS,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
        )


def _validate(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise ChunkingError(f"chunk_size ({chunk_size}) must be > 0")
    if chunk_overlap < 0:
        raise ChunkingError(f"chunk_overlap ({chunk_overlap}) must be >= 0")
    if chunk_overlap >= chunk_size:
        raise ChunkingError(
            f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
        )
