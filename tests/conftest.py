"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from langchain_core.embeddings import Embeddings

from rag_ingest.config import AppContext, Settings


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class FakeEmbeddings(Embeddings):
    """Deterministic provider that records every call.

    The vector for a text is ``[len(text), position-in-call]`` so tests can
    check order and one-to-one correspondence.
    """

    def __init__(self, fail_on_call: int | None = None) -> None:
        self.calls: list[list[str]] = []
        self.queries: list[str] = []
        self.fail_on_call = fail_on_call

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RuntimeError("429 rate limit exceeded")
        return [[float(len(t)), float(i)] for i, t in enumerate(texts)]

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return [float(len(text)), 0.0]


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(_env_file=None, upload_dir=str(tmp_path / "uploads"))


@pytest.fixture()
def context(settings: Settings) -> AppContext:
    return AppContext(settings=settings)


@pytest.fixture()
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture()
def embeddings_cls() -> type[FakeEmbeddings]:
    return FakeEmbeddings
