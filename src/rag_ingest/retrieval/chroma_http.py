"""Raw request/response access to the Chroma v2 REST API.

Used by the direct write path of
:class:`~rag_ingest.retrieval.chroma_store.ChromaVectorStore` when the
structured client cannot be used, and for paging through stored records.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

WRITE_OPERATIONS = ("upsert", "add")
LIST_PAGE_SIZE = 100


class ChromaRestClient:
    """Minimal client for the collection endpoints of a Chroma server.

    Parameters
    ----------
    base_url:
        Server root, e.g. ``http://localhost:8000``.
    tenant / database:
        Namespace the collections live in.
    timeout:
        Per-request timeout in seconds.
    session:
        Optional ``requests.Session`` (injected by tests).
    """

    def __init__(
        self,
        base_url: str,
        *,
        tenant: str = "default_tenant",
        database: str = "default_database",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.tenant = tenant
        self.database = database
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def collections_url(self) -> str:
        return (
            f"{self.base_url}/api/v2/tenants/{self.tenant}"
            f"/databases/{self.database}/collections"
        )

    def collection_url(self, collection_id: str, operation: str) -> str:
        return f"{self.collections_url}/{collection_id}/{operation}"

    # -- collections ----------------------------------------------------------

    def list_collections(self) -> list[dict[str, Any]]:
        """Return every collection record (``id``, ``name``, ``metadata`` …)."""
        collections: list[dict[str, Any]] = []
        offset = 0
        while True:
            response = self._session.get(
                self.collections_url,
                params={"limit": LIST_PAGE_SIZE, "offset": offset},
                timeout=self.timeout,
            )
            response.raise_for_status()
            page = response.json() or []
            collections.extend(page)
            if len(page) < LIST_PAGE_SIZE:
                return collections
            offset += LIST_PAGE_SIZE

    def create_collection(self, name: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
        response = self._session.post(
            self.collections_url,
            json={"name": name, "metadata": metadata or {}},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    # -- records --------------------------------------------------------------

    def write(self, collection_id: str, operation: str, payload: dict[str, Any]) -> requests.Response:
        """POST *payload* to the ``upsert`` or ``add`` endpoint of a collection."""
        if operation not in WRITE_OPERATIONS:
            raise ValueError(f"Unsupported write operation: {operation!r}")
        url = self.collection_url(collection_id, operation)
        logger.info("POST %s (%d records)", url, len(payload.get("ids", [])))
        response = self._session.post(url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response

    def get(
        self,
        collection_id: str,
        *,
        limit: int | None = None,
        offset: int | None = None,
        include: list[str] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"include": include or ["documents", "metadatas"]}
        if limit is not None:
            body["limit"] = limit
        if offset is not None:
            body["offset"] = offset
        response = self._session.post(
            self.collection_url(collection_id, "get"), json=body, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json() or {}


def describe_http_error(exc: BaseException) -> str:
    """One-line diagnostic for a failed REST call."""
    response = getattr(exc, "response", None)
    if response is None:
        return str(exc)
    status = response.status_code
    reason = response.reason or ""
    body = (response.text or "")[:500]
    if status == 422:
        return f"{status} {reason} (schema mismatch): {body}".strip()
    return f"{status} {reason}: {body}".strip()
