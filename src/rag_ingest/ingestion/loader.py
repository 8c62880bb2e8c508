"""Document loaders — thin wrappers around LangChain document loaders.

Each supported :class:`~rag_ingest.models.FileType` has exactly one handler.
Every handler returns LangChain ``Document`` objects whose metadata is seeded
with the ``source`` path and the ``file_type`` tag.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pandas as pd
from bs4 import BeautifulSoup
from langchain_community.document_loaders import PyPDFLoader, TextLoader
from langchain_core.documents import Document

from rag_ingest.config import AppContext
from rag_ingest.errors import (
    ExtractionError,
    LoadError,
    SourceNotFoundError,
    UnsupportedFormatError,
)
from rag_ingest.models import FileType


def html_to_text(markup: str) -> str:
    """Return the visible text of *markup*, one block per line."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text(separator="\n").splitlines())
    return "\n".join(line for line in lines if line)


def _sheet_to_text(frame: pd.DataFrame) -> str:
    rows: list[str] = []
    for row in frame.itertuples(index=False):
        cells = ["" if pd.isna(cell) else str(cell) for cell in row]
        if any(cells):
            rows.append("\t".join(cells))
    return "\n".join(rows)


class DocumentLoader:
    """Turn a file path plus a format tag into logical documents.

    Parameters
    ----------
    context:
        Application context (settings and logger factory).
    """

    def __init__(self, context: AppContext) -> None:
        self._context = context
        self._logger = context.get_logger(__name__)
        self._handlers: dict[FileType, Callable[[Path], list[Document]]] = {
            FileType.PDF: self._load_pdf,
            FileType.SPREADSHEET: self._load_spreadsheet,
            FileType.TEXT: self._load_text,
            FileType.HTML: self._load_html,
        }

    def load(
        self,
        source: str | Path,
        file_type: FileType | str,
        *,
        strip_html: bool = False,
    ) -> list[Document]:
        """Load *source* as an ordered list of documents.

        Parameters
        ----------
        source:
            Path of the file to load.
        file_type:
            One of the :class:`FileType` tags.
        strip_html:
            Reduce HTML documents to their visible text after loading.

        Raises
        ------
        UnsupportedFormatError
            *file_type* is not a known tag.
        SourceNotFoundError
            *source* does not point at a file.
        LoadError
            The underlying parser failed.
        """
        try:
            kind = FileType(file_type)
        except ValueError:
            raise UnsupportedFormatError(f"Unsupported file type: {file_type!r}") from None

        path = Path(source)
        self._logger.info("Loading document %s (type=%s)", path, kind.value)
        if not path.is_file():
            raise SourceNotFoundError(f"File not found: {path}")

        try:
            documents = self._handlers[kind](path)
        except ExtractionError:
            raise
        except Exception as exc:
            self._logger.error("Failed to load document %s: %s", path, exc)
            raise LoadError(f"Failed to load document: {exc}") from exc

        for doc in documents:
            doc.metadata["source"] = str(source)
            doc.metadata["file_type"] = kind.value

        if kind is FileType.HTML and strip_html:
            for doc in documents:
                doc.page_content = html_to_text(doc.page_content)

        self._logger.info("Loaded %d document(s) from %s", len(documents), path)
        return documents

    # -- handlers -------------------------------------------------------------

    def _load_pdf(self, path: Path) -> list[Document]:
        # Single mode: the whole file is one logical document.
        return PyPDFLoader(str(path), mode="single").load()

    def _load_spreadsheet(self, path: Path) -> list[Document]:
        if path.suffix.lower() == ".csv":
            sheets = {path.stem: pd.read_csv(path, header=None, dtype=object)}
        else:
            sheets = pd.read_excel(path, sheet_name=None, header=None, dtype=object)

        documents: list[Document] = []
        for sheet_name, frame in sheets.items():
            text = _sheet_to_text(frame)
            if not text.strip():
                self._logger.debug("Skipping empty sheet %r in %s", sheet_name, path)
                continue
            documents.append(Document(page_content=text, metadata={"sheet": str(sheet_name)}))
        return documents

    def _load_text(self, path: Path) -> list[Document]:
        return TextLoader(str(path), encoding="utf-8", autodetect_encoding=True).load()

    def _load_html(self, path: Path) -> list[Document]:
        # Raw markup; tag stripping is an explicit post-processing step.
        return TextLoader(str(path), encoding="utf-8", autodetect_encoding=True).load()
