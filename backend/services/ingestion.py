"""Document ingestion: extract, chunk, embed, store; plus listing and deletion."""
import logging
import threading
import time
from typing import Dict, List, Sequence

from models.document import DocumentRecord, Page
from services.chunking_engine import ChunkingEngine
from services.document_loader import DocumentLoader
from services.document_store import DocumentStore
from services.embedding_model import EmbeddingModel
from services.errors import DocumentNotFoundError, ValidationError
from services.vector_store import VectorIndex
from config import DOCUMENT_LIST_LIMIT

logger = logging.getLogger(__name__)


class IngestionService:
    """Turns uploaded PDFs into stored document records and chunk vectors."""

    def __init__(
        self,
        document_loader: DocumentLoader,
        chunking_engine: ChunkingEngine,
        embedding_model: EmbeddingModel,
        vector_index: VectorIndex,
        document_store: DocumentStore
    ):
        self.document_loader = document_loader
        self.chunking_engine = chunking_engine
        self.embedding_model = embedding_model
        self.vector_index = vector_index
        self.document_store = document_store
        self._id_lock = threading.Lock()
        self._last_id = 0

    def ingest(self, filename: str, raw_bytes: bytes) -> DocumentRecord:
        """
        Process an uploaded PDF end to end.

        Raises:
            ValidationError: If the filename is missing
            ExtractionError: If the PDF cannot be read
            EmbeddingServiceError: If chunk embedding fails (nothing is stored)
            VectorStoreError, DocumentStoreError: If storage fails
        """
        if not filename:
            raise ValidationError("Filename is required")

        logger.info(f"Processing PDF: {filename}")
        extracted = self.document_loader.extract(raw_bytes)
        return self.ingest_pages(filename, extracted.pages, len(extracted.full_text))

    def ingest_pages(self, filename: str, pages: Sequence[Page], text_length: int) -> DocumentRecord:
        """Chunk, embed and store already-extracted pages."""
        chunks = self.chunking_engine.chunk_pages(pages)
        logger.info(f"Created {len(chunks)} chunks from {len(pages)} pages")

        embeddings = self.embedding_model.embed_batch([chunk.text for chunk in chunks])

        doc_id = self._new_doc_id()
        record = DocumentRecord(
            doc_id=doc_id,
            filename=filename,
            text_length=text_length,
            chunk_count=len(chunks),
            total_pages=len(pages),
        )

        # The record insert claims doc_id; a duplicate fails here before any vector is written
        self.document_store.insert(record)
        try:
            self.vector_index.upsert_document(doc_id, chunks, embeddings)
        except Exception:
            logger.error(f"Vector write failed for doc {doc_id}, removing its record")
            self.document_store.delete(doc_id)
            raise

        logger.info(f"Document {doc_id} ({filename}) stored with {len(chunks)} chunks")
        return record

    def get_document(self, doc_id: str) -> DocumentRecord:
        record = self.document_store.get(doc_id)
        if record is None:
            raise DocumentNotFoundError(doc_id)
        return record

    def list_documents(self, limit: int = DOCUMENT_LIST_LIMIT) -> List[DocumentRecord]:
        return self.document_store.list_recent(limit)

    def delete_document(self, doc_id: str) -> bool:
        """
        Delete a document and all of its vectors. Unknown ids are not an error.

        Returns:
            Whether a document record existed
        """
        if not doc_id:
            raise ValidationError("doc_id is required")

        deleted_vectors = self.vector_index.delete_document(doc_id)
        existed = self.document_store.delete(doc_id)
        logger.info(f"Deleted document {doc_id} (record existed: {existed}, vectors: {deleted_vectors})")
        return existed

    def stats(self) -> Dict[str, int]:
        return {
            "documents": self.document_store.count(),
            "vectors": self.vector_index.count(),
        }

    def _new_doc_id(self) -> str:
        """Millisecond timestamp id, bumped when two ingests land in the same millisecond."""
        with self._id_lock:
            candidate = max(int(time.time() * 1000), self._last_id + 1)
            self._last_id = candidate
        return str(candidate)
