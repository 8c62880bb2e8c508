"""
Retrieval — vector-store persistence and similarity search.

Public surface
--------------
- :class:`VectorStoreBase` — abstract backend (subclass for other stores).
- :class:`ChromaVectorStore` — default Chroma backend with fallback writes.
- :class:`MetadataFilter` — declarative search filter.
"""

from rag_ingest.retrieval.base import VectorStoreBase
from rag_ingest.retrieval.models import MetadataFilter

__all__ = [
    "ChromaVectorStore",
    "MetadataFilter",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in the HTTP stack at import time."""
    if name == "ChromaVectorStore":
        from rag_ingest.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
