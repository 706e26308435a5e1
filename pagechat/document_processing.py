"""Document loading and text chunking functionality."""

import io
import re
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Protocol

import pypdf
from pypdf.errors import PyPdfError

from .config import config
from .errors import DocumentReadError
from .models import DocumentChunk

logger = config.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]

_WHITESPACE = re.compile(r"\s+")
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


class PageSource(Protocol):
    """Page-level text provider for one document."""

    name: str
    size_bytes: int

    @property
    def page_count(self) -> int: ...

    def page_text(self, index: int) -> str: ...


class PdfPageSource:
    """Page source backed by a PDF parsed with pypdf."""

    def __init__(self, name: str, data: bytes) -> None:
        """Parse PDF bytes.

        Args:
            name: Display name of the document, usually the file name.
            data: Raw PDF bytes.

        Raises:
            DocumentReadError: If pypdf cannot parse the bytes.
        """
        self.name = name
        self.size_bytes = len(data)
        try:
            self._reader = pypdf.PdfReader(io.BytesIO(data))
        except PyPdfError as e:
            logger.exception("Error loading PDF %s", name)
            msg = f"Cannot read PDF '{name}': {e!s}"
            raise DocumentReadError(msg) from e

    @classmethod
    def from_path(cls, file_path: Path) -> "PdfPageSource":
        return cls(file_path.name, file_path.read_bytes())

    @property
    def page_count(self) -> int:
        try:
            return len(self._reader.pages)
        except PyPdfError as e:
            msg = f"Cannot read page tree of '{self.name}': {e!s}"
            raise DocumentReadError(msg) from e

    def page_text(self, index: int) -> str:
        try:
            return self._reader.pages[index].extract_text() or ""
        except PyPdfError as e:
            msg = f"Cannot read page {index + 1} of '{self.name}': {e!s}"
            raise DocumentReadError(msg) from e


class TextPageSource:
    """Page source over text already split into pages."""

    def __init__(
        self, name: str, pages: list[str], size_bytes: int | None = None
    ) -> None:
        self.name = name
        self.pages = list(pages)
        if size_bytes is None:
            size_bytes = sum(len(page.encode("utf-8")) for page in self.pages)
        self.size_bytes = size_bytes

    @classmethod
    def from_text(cls, name: str, text: str) -> "TextPageSource":
        """Build a source from plain text, treating form feeds as page breaks."""
        return cls(name, text.split("\f"), size_bytes=len(text.encode("utf-8")))

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page_text(self, index: int) -> str:
        return self.pages[index]


class DocumentLoader:
    """Handles opening PDF and TXT documents as page sources."""

    @staticmethod
    def load_pdf(file_path: Path) -> PdfPageSource:
        """Open a PDF file.

        Returns:
            Page source over the PDF's pages.
        """
        return PdfPageSource.from_path(file_path)

    @staticmethod
    def load_txt(file_path: Path) -> TextPageSource:
        """Open a TXT file.

        Returns:
            Page source with one page per form-feed separated section.
        """
        try:
            with file_path.open(encoding="utf-8") as file:
                text = file.read()
            logger.info("Successfully loaded TXT file")
        except Exception:
            logger.exception("Error loading TXT %s", file_path)
            raise
        else:
            return TextPageSource.from_text(file_path.name, text)

    @classmethod
    def load_document(cls, file_path: Path) -> PageSource:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            A page source for the document.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext == ".txt":
            return cls.load_txt(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValueError(msg)


class TextChunker:
    """Splits page text into fixed-size windows with overlap."""

    def __init__(
        self,
        chunk_size: int = 1000,
        overlap: int = 200,
        min_length: int = 50,
    ) -> None:
        """Initialize the TextChunker.

        Args:
            chunk_size: Window size in characters.
            overlap: Characters shared by consecutive windows.
            min_length: Windows whose stripped text is not longer than this
                are dropped.

        Raises:
            ValueError: If the window parameters cannot make progress.
        """
        if chunk_size <= 0:
            msg = f"chunk_size must be positive, got {chunk_size}"
            raise ValueError(msg)
        if not 0 <= overlap < chunk_size:
            msg = f"overlap ({overlap}) must be in [0, chunk_size={chunk_size})"
            raise ValueError(msg)
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.min_length = min_length

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    @staticmethod
    def normalize(text: str) -> str:
        return _WHITESPACE.sub(" ", text).strip()

    def chunk_page(
        self, text: str, page_number: int, source: str = "document"
    ) -> Iterator[DocumentChunk]:
        """Lazily split one page into overlapping chunks.

        Chunk ids are ``p{page_number}-{start}`` where ``start`` is the
        window offset into the normalized page text.

        Yields:
            DocumentChunk for every window with enough content.
        """
        text = self.normalize(text)
        for start in range(0, len(text), self.step):
            end = min(start + self.chunk_size, len(text))
            window = text[start:end]
            length = len(window.strip())
            if length <= self.min_length:
                continue
            yield DocumentChunk(
                chunk_id=f"p{page_number}-{start}",
                content=window,
                page_number=page_number,
                metadata={
                    "source": source,
                    "start_char": start,
                    "end_char": end,
                    "length": length,
                },
            )

    def chunk_pages(
        self,
        page_source: PageSource,
        progress_callback: ProgressCallback | None = None,
    ) -> list[DocumentChunk]:
        """Chunk every page of ``page_source`` in page order.

        ``progress_callback`` receives ``(page_number, total_pages)`` after
        each page has been chunked.

        Returns:
            All chunks of the document.
        """
        total_pages = page_source.page_count
        chunks: list[DocumentChunk] = []
        for index in range(total_pages):
            page_number = index + 1
            chunks.extend(
                self.chunk_page(
                    page_source.page_text(index), page_number, page_source.name
                )
            )
            if progress_callback is not None:
                progress_callback(page_number, total_pages)

        logger.info(
            "Split %d pages of %s into %d chunks",
            total_pages,
            page_source.name,
            len(chunks),
        )
        return chunks


def format_bytes(size: int, decimals: int = 2) -> str:
    """Render a byte count for display, e.g. ``1.5 KB``."""
    if not size:
        return "0 Bytes"
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    value = round(value, max(decimals, 0))
    return f"{value:g} {_SIZE_UNITS[exponent]}"
