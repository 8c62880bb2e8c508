"""Exception hierarchy for the ingestion pipeline."""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for every error raised by a pipeline step."""


class LoadError(ExtractionError):
    """The source could not be read or parsed."""


class SourceNotFoundError(LoadError):
    """The source reference does not resolve to a file."""


class UnsupportedFormatError(ExtractionError, ValueError):
    """The declared file-format tag is not one the loader handles."""


class ChunkingError(ExtractionError, ValueError):
    """The splitter configuration is malformed."""


class EmbeddingError(ExtractionError):
    """A call to the embedding provider failed."""


class VectorStoreError(ExtractionError):
    """Collection resolution failed or every write variant was exhausted."""


class StagingError(ValueError):
    """An uploaded file was rejected before extraction."""
