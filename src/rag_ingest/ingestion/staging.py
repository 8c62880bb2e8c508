"""Staging of uploaded files on local disk for the loader."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO
from uuid import uuid4

from rag_ingest.config import AppContext
from rag_ingest.errors import StagingError
from rag_ingest.models import SUPPORTED_EXTENSIONS, FileType


class FileStager:
    """Validate uploads and write them under ``settings.upload_dir``."""

    def __init__(self, context: AppContext) -> None:
        self._settings = context.settings
        self._logger = context.get_logger(__name__)
        self.upload_dir = Path(self._settings.upload_dir)

    def validate(self, filename: str | None, size: int) -> FileType:
        """Check an upload and return its inferred :class:`FileType`.

        Raises
        ------
        StagingError
            If the file is missing, empty, too large, or of an unsupported type.
        """
        if not filename:
            raise StagingError("No file was uploaded")
        if size == 0:
            raise StagingError("Uploaded file is empty")
        if size > self._settings.max_upload_bytes:
            limit_mb = self._settings.max_upload_bytes // (1024 * 1024)
            raise StagingError(f"File too large. Maximum size: {limit_mb}MB")
        suffix = Path(filename).suffix.lower()
        if suffix not in SUPPORTED_EXTENSIONS:
            raise StagingError(f"Unsupported file type: {suffix or filename}")
        return FileType.from_filename(filename)

    def read_limited(self, stream: BinaryIO) -> bytes:
        """Read an upload stream, stopping one byte past the size limit.

        The extra byte is enough for :meth:`validate` to reject the upload.
        """
        return stream.read(self._settings.max_upload_bytes + 1)

    def save(self, filename: str, content: bytes) -> Path:
        """Write *content* to a uniquely named file and return its path."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_dir / f"{uuid4()}{Path(filename).suffix.lower()}"
        path.write_bytes(content)
        self._logger.info("Staged upload %s as %s (%d bytes)", filename, path, len(content))
        return path

    def remove(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        self._logger.info("Removed staged file %s", path)

    @contextmanager
    def staged(self, filename: str | None, content: bytes) -> Iterator[tuple[Path, FileType]]:
        """Validate and stage an upload; the file is deleted on exit."""
        file_type = self.validate(filename, len(content))
        path = self.save(filename or "", content)
        try:
            yield path, file_type
        finally:
            self.remove(path)
