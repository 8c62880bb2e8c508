"""Chroma implementation of the vector-store abstraction.

Writes go through one of two paths:

* **structured** — LangChain's ``Chroma`` wrapper over the shared
  ``chromadb.HttpClient``; used when some chunks still lack an embedding.
* **direct** — raw REST calls (:mod:`rag_ingest.retrieval.chroma_http`):
  resolve the collection id, sanitize metadata, then try ``upsert`` and
  ``add`` in order.

When every chunk is already embedded only the direct path runs, so the
embedding provider is never called twice for the same text.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime
from enum import Enum
from functools import partial
from typing import Any

import requests
from langchain_core.documents import Document

from rag_ingest.config import AppContext
from rag_ingest.errors import VectorStoreError
from rag_ingest.ingestion.embedder import EmbeddingGenerator
from rag_ingest.models import DocumentChunk
from rag_ingest.retrieval.base import VectorStoreBase
from rag_ingest.retrieval.chroma_http import (
    WRITE_OPERATIONS,
    ChromaRestClient,
    describe_http_error,
)
from rag_ingest.retrieval.fallback import Attempt, AttemptsExhausted, first_success
from rag_ingest.retrieval.models import MetadataFilter, SearchFilter

logger = logging.getLogger(__name__)

COLLECTION_METADATA = {"hnsw:space": "cosine"}

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _to_where(filter: SearchFilter | None) -> dict[str, Any] | None:
    if not filter:
        return None
    if isinstance(filter, list):
        return _build_chroma_where(filter)
    # Chroma rejects several top-level fields unless they are wrapped in $and.
    if len(filter) > 1 and not any(key.startswith("$") for key in filter):
        return {"$and": [{key: value} for key, value in filter.items()]}
    return dict(filter)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def sanitize_metadata(
    metadata: dict[str, Any], log: logging.Logger = logger
) -> dict[str, str | int | float | bool]:
    """Flatten *metadata* into values Chroma accepts.

    Scalars pass through, ``None`` is dropped, lists/tuples/dicts become JSON
    strings, enums and datetimes become their value / ISO form.  Anything that
    cannot be serialized is skipped with a warning.
    """
    cleaned: dict[str, str | int | float | bool] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        if isinstance(value, (str, int, float, bool)):
            cleaned[key] = value
        elif isinstance(value, (datetime, date)):
            cleaned[key] = value.isoformat()
        else:
            if isinstance(value, tuple):
                value = list(value)
            try:
                cleaned[key] = json.dumps(value, default=_json_default)
            except (TypeError, ValueError) as exc:
                log.warning("Skipping metadata field %r: %s", key, exc)
    return cleaned


def _record_metadata(chunk: DocumentChunk, log: logging.Logger = logger) -> dict[str, Any]:
    base = {
        "id": chunk.id,
        "source": chunk.source,
        "file_type": chunk.file_type,
        "chunk_index": chunk.chunk_index,
    }
    return sanitize_metadata({**base, **chunk.metadata}, log)


def _to_chunk(
    record_id: str,
    content: str | None,
    metadata: dict[str, Any] | None,
    embedding: list[float] | None = None,
) -> DocumentChunk:
    meta = dict(metadata or {})
    return DocumentChunk(
        id=str(meta.get("id") or record_id),
        content=content or "",
        metadata=meta,
        embedding=list(embedding) if embedding is not None else None,
        source=str(meta.get("source") or "unknown"),
        file_type=str(meta.get("file_type") or "unknown"),
        chunk_index=int(meta.get("chunk_index") or 0),
    )


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store with a resilient write path.

    Parameters
    ----------
    context:
        Application context; connection details come from its settings.
    embedder:
        Generator used for query embeddings and for chunks saved without one.
    collection_name:
        Target collection; defaults to ``settings.chroma_collection``.
    client:
        Pre-built ``chromadb`` client.  When *None*, an ``HttpClient`` is
        created on first use and reused afterwards.
    rest:
        Raw REST client for the direct path.
    """

    def __init__(
        self,
        context: AppContext,
        embedder: EmbeddingGenerator,
        *,
        collection_name: str | None = None,
        client: Any | None = None,
        rest: ChromaRestClient | None = None,
    ) -> None:
        settings = context.settings
        super().__init__(collection_name or settings.chroma_collection)
        self._settings = settings
        self._logger = context.get_logger(__name__)
        self._embedder = embedder
        self._client = client
        self._rest = rest or ChromaRestClient(
            settings.chroma_url,
            tenant=settings.chroma_tenant,
            database=settings.chroma_database,
            timeout=settings.chroma_http_timeout,
        )
        self._collection_ids: dict[str, str] = {}
        self._client_lock = threading.Lock()
        self._collection_lock = threading.Lock()

    # -- shared handles -------------------------------------------------------

    def _get_client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                import chromadb

                self._logger.info(
                    "Connecting to Chroma at %s (collection=%s)",
                    self._settings.chroma_url,
                    self.collection_name,
                )
                self._client = chromadb.HttpClient(
                    host=self._settings.chroma_host,
                    port=self._settings.chroma_port,
                    ssl=self._settings.chroma_ssl,
                    tenant=self._settings.chroma_tenant,
                    database=self._settings.chroma_database,
                )
            return self._client

    def _get_collection(self) -> Any:
        return self._get_client().get_or_create_collection(
            name=self.collection_name, metadata=COLLECTION_METADATA
        )

    def resolve_collection_id(self, *, create: bool = True) -> str | None:
        """Return the id of the target collection, creating it if needed.

        The id is cached per collection name, so only the first call lists
        (and possibly creates) collections.  Returns ``None`` when the
        collection does not exist and *create* is false.

        Raises
        ------
        VectorStoreError
            If the server cannot be listed or the collection cannot be created.
        """
        name = self.collection_name
        with self._collection_lock:
            cached = self._collection_ids.get(name)
            if cached:
                return cached
            try:
                collection_id = self._find_collection_id(name)
                if collection_id is None and create:
                    collection_id = self._create_collection(name)
            except (requests.RequestException, ValueError, KeyError) as exc:
                self._logger.error(
                    "Failed to get or create collection %s: %s", name, describe_http_error(exc)
                )
                raise VectorStoreError(f"Failed to get or create collection {name!r}") from exc
            if collection_id is not None:
                self._collection_ids[name] = collection_id
            return collection_id

    def _find_collection_id(self, name: str) -> str | None:
        for collection in self._rest.list_collections():
            if collection.get("name") == name:
                self._logger.info("Found collection %s with id %s", name, collection["id"])
                return str(collection["id"])
        return None

    def _create_collection(self, name: str) -> str:
        self._logger.info("Creating collection %s", name)
        try:
            created = self._rest.create_collection(name, COLLECTION_METADATA)
        except requests.HTTPError:
            # Another writer may have created it between list and create.
            existing = self._find_collection_id(name)
            if existing is None:
                raise
            return existing
        self._logger.info("Created collection %s with id %s", name, created["id"])
        return str(created["id"])

    # -- writes ---------------------------------------------------------------

    def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            self._logger.info("No chunks to save")
            return

        # Shared by both paths so vectors computed by a failed attempt are reused.
        known = {chunk.content: chunk.embedding for chunk in chunks if chunk.has_embedding}
        if all(chunk.has_embedding for chunk in chunks):
            self._logger.info("All %d chunks carry embeddings, writing directly", len(chunks))
            attempts = [Attempt("direct", partial(self._save_direct, chunks, known))]
        else:
            self._logger.info("Some chunks lack embeddings, using the structured client")
            attempts = [
                Attempt("structured", partial(self._save_structured, chunks, known)),
                Attempt("direct", partial(self._save_direct, chunks, known)),
            ]

        try:
            path, _ = first_success(attempts, logger=self._logger)
        except AttemptsExhausted as exc:
            raise VectorStoreError(f"Failed to save chunks to Chroma: {exc}") from exc
        self._logger.info("Saved %d chunks via %s path", len(chunks), path)

    def _save_structured(
        self, chunks: list[DocumentChunk], known: dict[str, list[float]]
    ) -> None:
        from langchain_community.vectorstores import Chroma

        store = Chroma(
            client=self._get_client(),
            collection_name=self.collection_name,
            embedding_function=self._embedder.as_langchain_embeddings(known),
            collection_metadata=COLLECTION_METADATA,
        )
        documents = [
            Document(page_content=chunk.content, metadata=_record_metadata(chunk, self._logger))
            for chunk in chunks
        ]
        store.add_documents(documents, ids=[chunk.id for chunk in chunks])

    def _save_direct(
        self, chunks: list[DocumentChunk], known: dict[str, list[float]] | None = None
    ) -> None:
        for chunk in chunks:
            if not chunk.has_embedding and known and chunk.content in known:
                chunk.attach_embedding(known[chunk.content])
        missing = [chunk for chunk in chunks if not chunk.has_embedding]
        if missing:
            self._embedder.generate_embeddings(missing)

        collection_id = self.resolve_collection_id()
        payload = {
            "ids": [chunk.id for chunk in chunks],
            "documents": [chunk.content for chunk in chunks],
            "metadatas": [_record_metadata(chunk, self._logger) for chunk in chunks],
            "embeddings": [chunk.embedding for chunk in chunks],
        }
        self._logger.debug("Sample sanitized metadata: %s", payload["metadatas"][0])

        attempts = [
            Attempt(operation, partial(self._rest.write, collection_id, operation, payload))
            for operation in WRITE_OPERATIONS
        ]
        try:
            operation, response = first_success(
                attempts, logger=self._logger, describe=describe_http_error
            )
        except AttemptsExhausted as exc:
            raise VectorStoreError(f"All write endpoints failed: {exc}") from exc
        self._logger.info(
            "Wrote %d chunks via %s (HTTP %s)", len(chunks), operation, response.status_code
        )

    # -- reads ----------------------------------------------------------------

    def similarity_search(
        self,
        query: str,
        *,
        k: int = 5,
        filter: SearchFilter | None = None,
    ) -> list[DocumentChunk]:
        if k <= 0:
            raise ValueError(f"k ({k}) must be > 0")
        where = _to_where(filter)
        self._logger.info("Searching %s for %r (k=%d)", self.collection_name, query, k)
        embedding = self._embedder.embed_query(query)

        try:
            collection = self._get_collection()
            count = collection.count()
            if count == 0:
                return []
            results = collection.query(
                query_embeddings=[embedding],
                n_results=min(k, count),
                where=where,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            self._logger.error("Similarity search failed: %s", exc)
            raise VectorStoreError(f"Failed to search similar documents: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        return [_to_chunk(i, d, m) for i, d, m in zip(ids, docs, metas)][:k]

    def list_chunks(self, *, limit: int | None = None, offset: int | None = None) -> list[DocumentChunk]:
        try:
            collection_id = self.resolve_collection_id(create=False)
            if collection_id is None:
                return []
            data = self._rest.get(collection_id, limit=limit, offset=offset)
        except requests.RequestException as exc:
            self._logger.error("Failed to list chunks: %s", describe_http_error(exc))
            raise VectorStoreError(f"Failed to list chunks: {exc}") from exc

        ids = data.get("ids") or []
        docs = data.get("documents") or [None] * len(ids)
        metas = data.get("metadatas") or [None] * len(ids)
        return [_to_chunk(i, d, m) for i, d, m in zip(ids, docs, metas)]

    def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self._get_collection().delete(ids=ids)
        except Exception as exc:
            raise VectorStoreError(f"Failed to delete chunks: {exc}") from exc

    def health_check(self) -> bool:
        try:
            self._get_client().heartbeat()
            return True
        except Exception:
            self._logger.warning("Chroma health-check failed", exc_info=True)
            return False
