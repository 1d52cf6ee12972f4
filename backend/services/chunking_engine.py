"""Paragraph-aware chunking engine with page and paragraph tracking."""
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple, Union

from models.document import Page
from models.chunk import Chunk, ChunkMetadata
from config import CHUNK_SIZE, CHUNK_OVERLAP

logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r"\n\n+")
PARAGRAPH_SEPARATOR = "\n\n"


class _ChunkBuffer:
    """Running chunk text that remembers where each character came from on the page.

    ``segments`` holds ``(buffer_offset, page_offset, length)`` triples for every
    run of text copied from the page. Separators inserted between paragraphs
    are not covered by any segment.
    """

    def __init__(self):
        self.text = ""
        self.segments: List[Tuple[int, int, int]] = []

    def __len__(self) -> int:
        return len(self.text)

    def append(self, paragraph: str, page_offset: int) -> None:
        if self.text:
            self.text += PARAGRAPH_SEPARATOR
        self.segments.append((len(self.text), page_offset, len(paragraph)))
        self.text += paragraph

    def tail(self, size: int) -> "_ChunkBuffer":
        """Return a new buffer holding the last ``size`` characters."""
        cut = len(self.text) - size
        tail = _ChunkBuffer()
        tail.text = self.text[cut:]
        for buffer_offset, page_offset, length in self.segments:
            if buffer_offset + length <= cut:
                continue
            skip = max(0, cut - buffer_offset)
            tail.segments.append((buffer_offset + skip - cut, page_offset + skip, length - skip))
        return tail

    def span(self) -> Tuple[int, int]:
        """Page offsets of the first and one-past-last non-whitespace characters."""
        first = len(self.text) - len(self.text.lstrip())
        last = len(self.text.rstrip()) - 1
        return self._locate(first), self._locate(last) + 1

    def _locate(self, index: int) -> int:
        for buffer_offset, page_offset, length in self.segments:
            if buffer_offset <= index < buffer_offset + length:
                return page_offset + index - buffer_offset
        # Only whitespace falls outside the segments
        raise ValueError(f"Buffer index {index} does not map to page text")


class ChunkingEngine:
    """Segments page text into overlapping chunks annotated with citation metadata."""

    def __init__(self, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP):
        """
        Initialize ChunkingEngine.

        Args:
            chunk_size: Target chunk size in characters
            chunk_overlap: Characters carried over from the previous chunk

        Raises:
            ValueError: If sizes are out of range
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap cannot be negative")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk_pages(
        self,
        pages: Sequence[Page],
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None
    ) -> List[Chunk]:
        """
        Split pages into chunks with page, paragraph and character metadata.

        Pages are chunked independently but share one chunk index counter, so
        chunk indexes run 0..N-1 across the whole document.

        Args:
            pages: Extracted pages in page order
            chunk_size: Override for the configured chunk size
            overlap: Override for the configured overlap

        Returns:
            List of Chunk objects, empty for empty input
        """
        chunk_size = self.chunk_size if chunk_size is None else chunk_size
        overlap = self.chunk_overlap if overlap is None else overlap

        chunks: List[Chunk] = []
        for page in pages:
            chunks.extend(self._chunk_page(page, chunk_size, overlap, first_index=len(chunks)))

        if chunks:
            stats = get_chunk_stats(chunks)
            logger.info(
                f"Chunking stats: total_chunks={stats['totalChunks']}, "
                f"pages_covered={len(pages)}, average_length={stats['averageLength']} characters"
            )
        else:
            logger.info(f"No chunks produced from {len(pages)} pages")

        return chunks

    def _chunk_page(self, page: Page, chunk_size: int, overlap: int, first_index: int) -> List[Chunk]:
        paragraphs = split_paragraphs(page.text)
        chunks: List[Chunk] = []

        buffer = _ChunkBuffer()
        start_paragraph = 0

        for paragraph_number, (paragraph, offset) in enumerate(paragraphs, start=1):
            if len(buffer) + len(paragraph) > chunk_size and len(buffer) > 0:
                chunks.append(self._build_chunk(
                    buffer, page, first_index + len(chunks), start_paragraph, paragraph_number - 1
                ))

                if len(buffer) > overlap:
                    buffer = buffer.tail(overlap)
                else:
                    buffer = _ChunkBuffer()
                start_paragraph = paragraph_number
            elif len(buffer) == 0:
                start_paragraph = paragraph_number

            buffer.append(paragraph, offset)

        if buffer.text.strip():
            chunks.append(self._build_chunk(
                buffer, page, first_index + len(chunks), start_paragraph, len(paragraphs)
            ))

        return chunks

    @staticmethod
    def _build_chunk(
        buffer: _ChunkBuffer,
        page: Page,
        chunk_index: int,
        first_paragraph: int,
        last_paragraph: int
    ) -> Chunk:
        text = buffer.text.strip()
        start, end = buffer.span()
        paragraph_range: Union[int, str] = (
            first_paragraph if first_paragraph == last_paragraph
            else f"{first_paragraph}-{last_paragraph}"
        )
        return Chunk(
            chunk_index=chunk_index,
            text=text,
            metadata=ChunkMetadata(
                page=page.page_number,
                paragraph_number=first_paragraph,
                paragraph_range=paragraph_range,
                start_char=page.start_char + start,
                end_char=page.start_char + end,
                chunk_length=len(text),
            ),
        )


def split_paragraphs(text: str) -> List[Tuple[str, int]]:
    """
    Split text on blank lines.

    Returns:
        (trimmed paragraph, offset of its first character in ``text``) pairs,
        skipping paragraphs that are empty after trimming
    """
    paragraphs: List[Tuple[str, int]] = []
    position = 0
    boundaries = [(m.start(), m.end()) for m in PARAGRAPH_BREAK.finditer(text)]
    boundaries.append((len(text), len(text)))

    for start, end in boundaries:
        raw = text[position:start]
        stripped = raw.strip()
        if stripped:
            paragraphs.append((stripped, position + len(raw) - len(raw.lstrip())))
        position = end

    return paragraphs


def get_chunk_stats(chunks: Sequence[Chunk]) -> Dict[str, int]:
    """Summarize chunk counts and lengths."""
    if not chunks:
        return {"totalChunks": 0, "uniquePages": 0, "averageLength": 0, "minLength": 0, "maxLength": 0}

    lengths = [len(chunk.text) for chunk in chunks]
    return {
        "totalChunks": len(chunks),
        "uniquePages": len({chunk.metadata.page for chunk in chunks}),
        "averageLength": round(sum(lengths) / len(lengths)),
        "minLength": min(lengths),
        "maxLength": max(lengths),
    }
