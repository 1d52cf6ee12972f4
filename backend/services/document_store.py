"""Document record storage: Supabase table or in-memory map."""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from supabase import create_client, Client

from models.document import DocumentRecord
from services.errors import DocumentStoreError
from config import SUPABASE_URL, SUPABASE_KEY, DOCUMENTS_TABLE, DOCUMENT_LIST_LIMIT

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """CRUD over ingested document records."""

    name = "abstract"

    @abstractmethod
    def insert(self, record: DocumentRecord) -> None:
        ...

    @abstractmethod
    def get(self, doc_id: str) -> Optional[DocumentRecord]:
        ...

    @abstractmethod
    def list_recent(self, limit: int = DOCUMENT_LIST_LIMIT) -> List[DocumentRecord]:
        """Newest uploads first."""

    @abstractmethod
    def delete(self, doc_id: str) -> bool:
        """Returns whether a record was removed."""

    @abstractmethod
    def count(self) -> int:
        ...


class InMemoryDocumentStore(DocumentStore):
    name = "memory"

    def __init__(self):
        self._records: Dict[str, DocumentRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: DocumentRecord) -> None:
        with self._lock:
            if record.doc_id in self._records:
                raise DocumentStoreError(f"Document {record.doc_id} already exists", {"doc_id": record.doc_id})
            self._records[record.doc_id] = record

    def get(self, doc_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            return self._records.get(doc_id)

    def list_recent(self, limit: int = DOCUMENT_LIST_LIMIT) -> List[DocumentRecord]:
        with self._lock:
            records = list(self._records.values())
        records.sort(key=lambda record: record.uploaded_at, reverse=True)
        return records[:limit]

    def delete(self, doc_id: str) -> bool:
        with self._lock:
            return self._records.pop(doc_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._records)


class SupabaseDocumentStore(DocumentStore):
    """Document records kept in a Supabase table keyed by doc_id."""

    name = "supabase"

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = DOCUMENTS_TABLE,
        client: Optional[Client] = None
    ):
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        logger.info(f"Initialized SupabaseDocumentStore with table: {table_name}")

    def insert(self, record: DocumentRecord) -> None:
        try:
            self.client.table(self.table_name).insert(record.to_row()).execute()
            logger.info(f"Document metadata saved for {record.doc_id}")
        except Exception as e:
            error_msg = f"Failed to save document record: {str(e)}"
            logger.error(error_msg)
            raise DocumentStoreError(error_msg, {"doc_id": record.doc_id}) from e

    def get(self, doc_id: str) -> Optional[DocumentRecord]:
        try:
            response = self.client.table(self.table_name).select("*").eq("doc_id", doc_id).limit(1).execute()
        except Exception as e:
            error_msg = f"Failed to load document {doc_id}: {str(e)}"
            logger.error(error_msg)
            raise DocumentStoreError(error_msg, {"doc_id": doc_id}) from e

        if response.data:
            return DocumentRecord.from_row(response.data[0])
        return None

    def list_recent(self, limit: int = DOCUMENT_LIST_LIMIT) -> List[DocumentRecord]:
        try:
            response = (
                self.client.table(self.table_name)
                .select("*")
                .order("uploaded_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            error_msg = f"Failed to list documents: {str(e)}"
            logger.error(error_msg)
            raise DocumentStoreError(error_msg) from e

        return [DocumentRecord.from_row(row) for row in response.data or []]

    def delete(self, doc_id: str) -> bool:
        try:
            response = self.client.table(self.table_name).delete().eq("doc_id", doc_id).execute()
        except Exception as e:
            error_msg = f"Failed to delete document {doc_id}: {str(e)}"
            logger.error(error_msg)
            raise DocumentStoreError(error_msg, {"doc_id": doc_id}) from e

        return bool(response.data)

    def count(self) -> int:
        try:
            response = self.client.table(self.table_name).select("doc_id", count="exact").limit(1).execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count documents: {str(e)}"
            logger.error(error_msg)
            raise DocumentStoreError(error_msg) from e
