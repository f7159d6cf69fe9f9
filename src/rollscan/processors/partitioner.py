"""
PDF partitioner: splits a source document into bounded page-range chunks.

Uses PyMuPDF (fitz) to count pages and to copy each page range into a
standalone PDF payload.
"""

from pathlib import Path
from typing import Optional
from uuid import uuid4

import fitz  # PyMuPDF
import structlog

from rollscan.core.exceptions import ConfigurationError, PartitionError
from rollscan.core.schemas import Chunk, SourceDocument
from rollscan.processors.base import DocumentToChunksProcessor

logger = structlog.get_logger(__name__)

SINGLE_CHUNK_ID = "original"
CHUNK_SUFFIX_HEX = 12  # 48 bits


def calculate_padding(total_pages: int) -> int:
    """Digits needed to print the largest page number."""
    return max(1, len(str(max(total_pages, 1))))


def format_page_range(start: int, end: int, padding: int) -> str:
    """Zero-padded ``start-end`` label, e.g. ``006-010``."""
    return f"{start:0{padding}d}-{end:0{padding}d}"


def plan_page_ranges(total_pages: int, max_pages_per_chunk: int) -> list[tuple[int, int]]:
    """
    Compute 1-indexed inclusive page ranges of at most ``max_pages_per_chunk``.

    The ranges are contiguous and cover ``1..total_pages`` exactly once.
    """
    if max_pages_per_chunk < 1:
        raise ConfigurationError(
            message="max_pages_per_chunk must be at least 1",
            details={"max_pages_per_chunk": max_pages_per_chunk},
        )
    if total_pages < 1:
        raise PartitionError(message="Document has no pages")

    return [
        (start + 1, min(start + max_pages_per_chunk, total_pages))
        for start in range(0, total_pages, max_pages_per_chunk)
    ]


class PdfPartitioner(DocumentToChunksProcessor):
    """
    Splits PDFs into chunks of at most ``max_pages_per_chunk`` pages.

    Documents that already fit in one chunk are passed through untouched
    under the id ``"original"``.
    """

    def __init__(self, max_pages_per_chunk: int = 5):
        if max_pages_per_chunk < 1:
            raise ConfigurationError(
                message="max_pages_per_chunk must be at least 1",
                details={"max_pages_per_chunk": max_pages_per_chunk},
            )
        self.max_pages_per_chunk = max_pages_per_chunk

    def load(self, path: str) -> SourceDocument:
        """Read and decode a PDF, counting its pages."""
        file_path = Path(path)
        if not file_path.is_file():
            raise PartitionError(
                message=f"PDF file not found: {path}",
                source_path=str(path),
            )

        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise PartitionError(
                message=f"Cannot read PDF: {path}",
                source_path=str(path),
                cause=e,
            )

        return self.load_bytes(data, name=file_path.stem, path=str(file_path))

    def load_bytes(self, data: bytes, name: str, path: Optional[str] = None) -> SourceDocument:
        """Decode an in-memory PDF."""
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                total_pages = doc.page_count
        except Exception as e:
            logger.error("Failed to get page count", source=path or name, error=str(e))
            raise PartitionError(
                message=f"Cannot decode PDF: {path or name}",
                source_path=path,
                cause=e,
            )

        if total_pages < 1:
            raise PartitionError(
                message=f"PDF has no pages: {path or name}",
                source_path=path,
            )

        return SourceDocument(
            path=path or name,
            name=name,
            total_pages=total_pages,
            data=data,
        )

    def partition(self, document: SourceDocument) -> list[Chunk]:
        """
        Split the document into ordered chunks.

        Args:
            document: Decoded source document

        Returns:
            Chunks in page order
        """
        ranges = plan_page_ranges(document.total_pages, self.max_pages_per_chunk)
        padding = calculate_padding(document.total_pages)

        logger.info(
            "PDF analysis",
            total_pages=document.total_pages,
            chunk_count=len(ranges),
            pages_per_chunk=self.max_pages_per_chunk,
        )

        if len(ranges) == 1:
            logger.info("PDF within chunk limit, no splitting required")
            start, end = ranges[0]
            return [
                Chunk(
                    chunk_id=SINGLE_CHUNK_ID,
                    page_range=(start, end),
                    sequence_index=0,
                    page_label=format_page_range(start, end, padding),
                    payload=document.data,
                )
            ]

        chunks: list[Chunk] = []
        seen_ids: set[str] = set()

        try:
            with fitz.open(stream=document.data, filetype="pdf") as source:
                for index, (start, end) in enumerate(ranges):
                    chunk_id = self._new_chunk_id(document.name, seen_ids)
                    chunks.append(
                        Chunk(
                            chunk_id=chunk_id,
                            page_range=(start, end),
                            sequence_index=index,
                            page_label=format_page_range(start, end, padding),
                            payload=self._extract_pages(source, start, end),
                        )
                    )
        except PartitionError:
            raise
        except Exception as e:
            logger.error("PDF splitting failed", source=document.path, error=str(e))
            raise PartitionError(
                message=f"PDF splitting failed: {str(e)}",
                source_path=document.path,
                cause=e,
            )

        return chunks

    def _new_chunk_id(self, base_name: str, seen_ids: set[str]) -> str:
        while True:
            chunk_id = f"{base_name}_{uuid4().hex[:CHUNK_SUFFIX_HEX]}"
            if chunk_id not in seen_ids:
                seen_ids.add(chunk_id)
                return chunk_id

    def _extract_pages(self, source: "fitz.Document", start: int, end: int) -> bytes:
        """Copy pages ``start..end`` (1-indexed) into a new PDF."""
        with fitz.open() as part:
            part.insert_pdf(source, from_page=start - 1, to_page=end - 1)
            return part.tobytes()
