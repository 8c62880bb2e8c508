"""Abstract base class for vector-store backends.

The orchestrator and the HTTP layer only see :class:`VectorStoreBase`;
:class:`~rag_ingest.retrieval.chroma_store.ChromaVectorStore` is the
production backend and tests substitute in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rag_ingest.models import DocumentChunk
from rag_ingest.retrieval.models import SearchFilter


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        """Persist *chunks* (text, metadata and embedding) in the collection."""
        ...

    @abstractmethod
    def similarity_search(
        self,
        query: str,
        *,
        k: int = 5,
        filter: SearchFilter | None = None,
    ) -> list[DocumentChunk]:
        """Return at most *k* stored chunks nearest to *query*.

        An empty collection yields an empty list.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def list_chunks(self, *, limit: int | None = None, offset: int | None = None) -> list[DocumentChunk]:
        """Page through stored chunks.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support listing")

    def delete(self, ids: list[str]) -> None:
        """Delete chunks by their IDs.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")
