"""PDF text extraction with page-level character offsets."""
import logging
import os
from typing import List, Tuple
import fitz  # PyMuPDF

from models.document import ExtractedDocument, Page
from services.errors import ExtractionError

logger = logging.getLogger(__name__)


class DocumentLoader:
    """Extracts text page by page from PDF bytes."""

    def extract(self, raw_bytes: bytes) -> ExtractedDocument:
        """
        Extract text from an in-memory PDF.

        The full text is the concatenation of the page texts, so each page's
        ``[start_char, end_char)`` range is a contiguous slice of it.

        Args:
            raw_bytes: PDF file contents

        Returns:
            ExtractedDocument with ordered pages and the full text

        Raises:
            ExtractionError: If the bytes are empty or not a readable PDF
        """
        if not raw_bytes:
            raise ExtractionError("Uploaded file is empty")

        try:
            pdf_document = fitz.open(stream=raw_bytes, filetype="pdf")
        except Exception as e:
            logger.error(f"Failed to open PDF: {str(e)}")
            raise ExtractionError(f"Could not read PDF: {str(e)}") from e

        pages: List[Page] = []
        texts: List[str] = []
        position = 0

        try:
            for page_num in range(len(pdf_document)):
                text = pdf_document[page_num].get_text()
                pages.append(Page(
                    page_number=page_num + 1,  # 1-indexed
                    text=text,
                    start_char=position,
                    end_char=position + len(text)
                ))
                texts.append(text)
                position += len(text)
        except Exception as e:
            logger.error(f"Failed to extract text from page {len(pages) + 1}: {str(e)}")
            raise ExtractionError(
                f"Could not extract text from page {len(pages) + 1}: {str(e)}",
                {"page": len(pages) + 1}
            ) from e
        finally:
            pdf_document.close()

        full_text = "".join(texts)
        logger.info(f"Extracted {len(full_text)} characters from {len(pages)} pages")
        return ExtractedDocument(pages=pages, full_text=full_text)

    @staticmethod
    def list_pdf_files(directory: str) -> List[Tuple[str, str]]:
        """
        List PDF files in a directory.

        Returns:
            Sorted (filename, full path) pairs; empty if the directory is missing
        """
        if not os.path.isdir(directory):
            logger.error(f"Documents directory not found: {directory}")
            return []

        pdf_files = sorted(f for f in os.listdir(directory) if f.lower().endswith(".pdf"))
        logger.info(f"Found {len(pdf_files)} PDF files in {directory}")
        return [(filename, os.path.join(directory, filename)) for filename in pdf_files]
