"""Unit tests for upload staging."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from rag_ingest.config import AppContext
from rag_ingest.errors import StagingError
from rag_ingest.ingestion.staging import FileStager
from rag_ingest.models import FileType


@pytest.fixture()
def stager(context: AppContext) -> FileStager:
    return FileStager(context)


@pytest.mark.parametrize(
    "filename, size, message",
    [
        (None, 10, "No file"),
        ("a.txt", 0, "empty"),
        ("a.txt", 51 * 1024 * 1024, "File too large. Maximum size: 50MB"),
        ("a.docx", 10, "Unsupported file type: .docx"),
    ],
)
def test_validate_rejects(stager: FileStager, filename, size: int, message: str) -> None:
    with pytest.raises(StagingError, match=message):
        stager.validate(filename, size)


def test_validate_infers_type(stager: FileStager) -> None:
    assert stager.validate("Budget.XLSX", 100) is FileType.SPREADSHEET


def test_staged_file_removed_on_exit(stager: FileStager) -> None:
    with stager.staged("notes.txt", b"hello") as (path, file_type):
        assert path.read_bytes() == b"hello"
        assert path.suffix == ".txt"
        assert path.parent == stager.upload_dir
        assert file_type is FileType.TEXT
        staged: Path = path

    assert not staged.exists()


def test_staged_file_removed_on_error(stager: FileStager) -> None:
    with pytest.raises(RuntimeError):
        with stager.staged("notes.txt", b"hello") as (path, _):
            raise RuntimeError("extraction blew up")

    assert not path.exists()


def test_rejected_upload_is_never_written(stager: FileStager) -> None:
    with pytest.raises(StagingError):
        with stager.staged("notes.exe", b"MZ"):
            pass

    assert not stager.upload_dir.exists() or not any(stager.upload_dir.iterdir())


def test_read_limited_stops_past_the_limit(context: AppContext) -> None:
    settings = context.settings.model_copy(update={"max_upload_bytes": 1024 * 1024})
    stager = FileStager(AppContext(settings=settings))
    stream = io.BytesIO(b"x" * (3 * 1024 * 1024))

    content = stager.read_limited(stream)

    assert len(content) == 1024 * 1024 + 1
    with pytest.raises(StagingError, match="Maximum size: 1MB"):
        stager.validate("big.txt", len(content))
