"""FastAPI application exposing extraction and search as a REST API."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from rag_ingest.config import AppContext, build_context
from rag_ingest.errors import ExtractionError, StagingError
from rag_ingest.ingestion.staging import FileStager
from rag_ingest.models import (
    ChunkingStrategy,
    DocumentChunk,
    DocumentExtraction,
    ExtractionRequest,
    ExtractionStatus,
)
from rag_ingest.pipeline.orchestrator import ExtractionOrchestrator


# ── Request / Response schemas ────────────────────────────────────────
class ChunkResponse(BaseModel):
    """A chunk as returned to API callers (embedding omitted)."""

    id: str
    content: str
    metadata: dict[str, Any] = {}

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk) -> ChunkResponse:
        return cls(id=chunk.id, content=chunk.content, metadata=chunk.metadata)


class ExtractionResponse(BaseModel):
    id: str
    status: str
    source: str
    file_type: str
    total_chunks: int
    chunks: list[ChunkResponse]
    processing_time_ms: int = 0
    error: str | None = None

    @classmethod
    def from_extraction(cls, extraction: DocumentExtraction) -> ExtractionResponse:
        return cls(
            id=extraction.id,
            status=extraction.status.value,
            source=extraction.source,
            file_type=extraction.file_type,
            total_chunks=extraction.total_chunks,
            chunks=[ChunkResponse.from_chunk(c) for c in extraction.chunks],
            processing_time_ms=extraction.processing_time_ms or 0,
            error=extraction.error,
        )


class SearchRequest(BaseModel):
    """Similarity query."""

    query: str = Field(min_length=1)
    k: int = Field(default=5, ge=1, le=100)
    filter: dict[str, Any] | None = None


# ── Dependencies ──────────────────────────────────────────────────────
def get_orchestrator(request: Request) -> ExtractionOrchestrator:
    state = request.app.state
    if state.orchestrator is None:
        state.orchestrator = ExtractionOrchestrator(state.context)
    return state.orchestrator


def get_stager(request: Request) -> FileStager:
    state = request.app.state
    if state.stager is None:
        state.stager = FileStager(state.context)
    return state.stager


def _raise_if_failed(extraction: DocumentExtraction) -> None:
    if extraction.status is ExtractionStatus.FAILED:
        raise HTTPException(
            status_code=500,
            detail={"message": "Document extraction failed", "error": extraction.error},
        )


def _upload_metadata(
    author: str | None,
    category: str | None,
    department: str | None,
    tags: str | None,
    additional_metadata: str | None,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if additional_metadata:
        try:
            extra = json.loads(additional_metadata)
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid additional_metadata: {exc}") from exc
        if not isinstance(extra, dict):
            raise HTTPException(status_code=400, detail="additional_metadata must be a JSON object")
        metadata.update(extra)
    for key, value in (("author", author), ("category", category), ("department", department)):
        if value:
            metadata[key] = value
    if tags:
        metadata["tags"] = [t.strip() for t in tags.split(",") if t.strip()]
    return metadata


# ── Routes ────────────────────────────────────────────────────────────
router = APIRouter(prefix="/api/v1/extraction", tags=["extraction"])


@router.post("", response_model=ExtractionResponse)
def extract(
    body: ExtractionRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> ExtractionResponse:
    """Load, chunk, embed and optionally store a document already on disk."""
    extraction = orchestrator.extract(body)
    _raise_if_failed(extraction)
    return ExtractionResponse.from_extraction(extraction)


@router.post("/upload", response_model=ExtractionResponse)
def upload_and_extract(
    file: UploadFile = File(...),
    chunking_strategy: str = Form(ChunkingStrategy.RECURSIVE.value),
    chunk_size: int = Form(1000),
    chunk_overlap: int = Form(200),
    author: str | None = Form(None),
    category: str | None = Form(None),
    department: str | None = Form(None),
    tags: str | None = Form(None),
    save_to_vector_store: bool = Form(True),
    additional_metadata: str | None = Form(None),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
    stager: FileStager = Depends(get_stager),
) -> ExtractionResponse:
    """Stage an uploaded file, extract it, and remove the staged copy."""
    metadata = _upload_metadata(author, category, department, tags, additional_metadata)
    content = stager.read_limited(file.file)
    try:
        with stager.staged(file.filename, content) as (path, file_type):
            metadata.update({"original_name": file.filename, "file_size": len(content)})
            extraction = orchestrator.extract(
                ExtractionRequest(
                    source=str(path),
                    file_type=file_type,
                    chunking_strategy=chunking_strategy,
                    chunk_size=chunk_size,
                    chunk_overlap=chunk_overlap,
                    metadata=metadata,
                    save_to_vector_store=save_to_vector_store,
                )
            )
    except StagingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    _raise_if_failed(extraction)
    return ExtractionResponse.from_extraction(extraction)


@router.post("/search", response_model=list[ChunkResponse])
def search(
    body: SearchRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> list[ChunkResponse]:
    """Return the chunks most similar to the query."""
    try:
        chunks = orchestrator.search(body.query, k=body.k, filter=body.filter)
    except (ExtractionError, ValueError) as exc:
        raise HTTPException(
            status_code=500, detail={"message": "Search failed", "error": str(exc)}
        ) from exc
    return [ChunkResponse.from_chunk(c) for c in chunks]


@router.get("/chunks", response_model=list[ChunkResponse])
def list_chunks(
    limit: int | None = None,
    offset: int | None = None,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> list[ChunkResponse]:
    """Page through the chunks stored in the collection."""
    try:
        chunks = orchestrator.vector_store.list_chunks(limit=limit, offset=offset)
    except ExtractionError as exc:
        raise HTTPException(
            status_code=500, detail={"message": "Listing chunks failed", "error": str(exc)}
        ) from exc
    return [ChunkResponse.from_chunk(c) for c in chunks]


def create_app(
    context: AppContext | None = None,
    *,
    orchestrator: ExtractionOrchestrator | None = None,
    stager: FileStager | None = None,
) -> FastAPI:
    """Build the API.  Components not passed in are created on first use."""
    app = FastAPI(
        title="RAG Ingest API",
        version="0.1.0",
        description="Document extraction, chunking, embedding and vector storage.",
    )
    app.state.context = context or build_context()
    app.state.orchestrator = orchestrator
    app.state.stager = stager

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "ok"}

    @app.get("/health/vector-store")
    def vector_store_health(
        orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
    ) -> dict[str, str]:
        """Readiness of the Chroma backend."""
        ok = orchestrator.vector_store.health_check()
        return {"status": "ok" if ok else "unavailable"}

    app.include_router(router)
    return app


app = create_app()
