"""Vector index backends and the primary/fallback search policy."""
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from supabase import create_client, Client

from models.chunk import Chunk, ChunkMetadata, IndexedVectorRecord, ScoredChunk
from services.errors import ValidationError, VectorStoreError, ZeroVectorError
from services.similarity import cosine_similarity
from config import (
    SUPABASE_URL,
    SUPABASE_KEY,
    VECTORS_TABLE,
    MATCH_FUNCTION,
    CANDIDATE_MULTIPLIER,
    FALLBACK_SCAN_LIMIT,
    EMBEDDING_DIMENSIONS,
)

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).parent.parent / "schema.sql"


class VectorIndex(ABC):
    """Store chunk vectors per document and rank them against a query vector."""

    name = "abstract"

    @abstractmethod
    def upsert_document(self, doc_id: str, chunks: Sequence[Chunk], vectors: Sequence[List[float]]) -> int:
        """Write one record per chunk; returns the number written."""

    @abstractmethod
    def search(self, doc_id: str, query_vector: List[float], top_k: int) -> List[ScoredChunk]:
        """Return at most ``top_k`` chunks of ``doc_id`` by descending score."""

    @abstractmethod
    def delete_document(self, doc_id: str) -> int:
        """Remove every record of ``doc_id``; deleting an unknown id is a no-op."""

    @abstractmethod
    def fetch_records(self, doc_id: str, limit: Optional[int] = None) -> List[IndexedVectorRecord]:
        """Return stored records of ``doc_id`` in storage order."""

    @abstractmethod
    def count(self) -> int:
        """Total number of stored records."""


def build_records(doc_id: str, chunks: Sequence[Chunk], vectors: Sequence[List[float]]) -> List[IndexedVectorRecord]:
    """
    Pair chunks with their embeddings.

    Raises:
        ValidationError: If counts differ, before anything is written
    """
    if not doc_id:
        raise ValidationError("doc_id is required")
    if len(chunks) != len(vectors):
        raise ValidationError(
            "Number of chunks and embeddings must match",
            {"chunks": len(chunks), "embeddings": len(vectors)}
        )

    created_at = datetime.now(timezone.utc)
    return [
        IndexedVectorRecord(
            doc_id=doc_id,
            chunk_index=chunk.chunk_index,
            text=chunk.text,
            embedding=list(vector),
            metadata=chunk.metadata,
            created_at=created_at,
        )
        for chunk, vector in zip(chunks, vectors)
    ]


def validate_query(query_vector: Sequence[float], top_k: int) -> None:
    """
    Raises:
        ValidationError: If the query vector is empty or top_k is not positive
        ZeroVectorError: If the query vector has no direction
    """
    if query_vector is None or len(query_vector) == 0:
        raise ValidationError("Query embedding cannot be empty")
    if top_k <= 0:
        raise ValidationError("top_k must be positive")
    if not any(query_vector):
        raise ZeroVectorError("Query embedding is a zero vector")


def rank_by_cosine(
    records: Iterable[IndexedVectorRecord],
    query_vector: List[float],
    top_k: int
) -> List[ScoredChunk]:
    """Score records by cosine similarity; ties keep their storage order."""
    scored = [
        ScoredChunk(
            chunk_index=record.chunk_index,
            text=record.text,
            metadata=record.metadata,
            score=cosine_similarity(query_vector, record.embedding),
        )
        for record in records
    ]
    # sorted() is stable, so equal scores stay in storage order
    return sorted(scored, key=lambda chunk: chunk.score, reverse=True)[:top_k]


class InMemoryVectorIndex(VectorIndex):
    """Map-based vector index for development and tests."""

    name = "memory"

    def __init__(self):
        self._records: Dict[str, List[IndexedVectorRecord]] = {}
        self._lock = threading.RLock()

    def upsert_document(self, doc_id: str, chunks: Sequence[Chunk], vectors: Sequence[List[float]]) -> int:
        records = build_records(doc_id, chunks, vectors)

        with self._lock:
            existing = list(self._records.get(doc_id, []))
            positions = {record.chunk_index: idx for idx, record in enumerate(existing)}
            for record in records:
                if record.chunk_index in positions:
                    existing[positions[record.chunk_index]] = record
                else:
                    positions[record.chunk_index] = len(existing)
                    existing.append(record)
            self._records[doc_id] = existing

        logger.info(f"Stored {len(records)} chunks with metadata for doc {doc_id}")
        return len(records)

    def search(self, doc_id: str, query_vector: List[float], top_k: int) -> List[ScoredChunk]:
        validate_query(query_vector, top_k)
        return rank_by_cosine(self.fetch_records(doc_id), query_vector, top_k)

    def delete_document(self, doc_id: str) -> int:
        with self._lock:
            removed = self._records.pop(doc_id, [])
        if removed:
            logger.info(f"Deleted {len(removed)} vectors for doc {doc_id}")
        return len(removed)

    def fetch_records(self, doc_id: str, limit: Optional[int] = None) -> List[IndexedVectorRecord]:
        with self._lock:
            records = list(self._records.get(doc_id, []))
        return records if limit is None else records[:limit]

    def count(self) -> int:
        with self._lock:
            return sum(len(records) for records in self._records.values())

    def document_count(self) -> int:
        with self._lock:
            return len(self._records)


class BruteForceVectorIndex(VectorIndex):
    """Linear cosine scan over the first ``scan_limit`` stored records of a document.

    Reads and writes go to ``store``; only scoring happens here. The scan
    limit trades recall on large documents for bounded latency.
    """

    name = "fallback"

    def __init__(self, store: VectorIndex, scan_limit: int = FALLBACK_SCAN_LIMIT):
        if scan_limit <= 0:
            raise ValueError("scan_limit must be positive")
        self.store = store
        self.scan_limit = scan_limit

    def upsert_document(self, doc_id: str, chunks: Sequence[Chunk], vectors: Sequence[List[float]]) -> int:
        return self.store.upsert_document(doc_id, chunks, vectors)

    def search(self, doc_id: str, query_vector: List[float], top_k: int) -> List[ScoredChunk]:
        validate_query(query_vector, top_k)
        records = self.store.fetch_records(doc_id, limit=self.scan_limit)
        results = rank_by_cosine(records, query_vector, top_k)

        logger.info(f"Brute-force search scanned {len(records)} records for doc {doc_id}")
        return results

    def delete_document(self, doc_id: str) -> int:
        return self.store.delete_document(doc_id)

    def fetch_records(self, doc_id: str, limit: Optional[int] = None) -> List[IndexedVectorRecord]:
        return self.store.fetch_records(doc_id, limit)

    def count(self) -> int:
        return self.store.count()


class SupabaseVectorIndex(VectorIndex):
    """pgvector-backed index queried through an approximate nearest-neighbor RPC."""

    name = "supabase"

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = VECTORS_TABLE,
        match_function: str = MATCH_FUNCTION,
        candidate_multiplier: int = CANDIDATE_MULTIPLIER,
        client: Optional[Client] = None
    ):
        """
        Initialize the vector index with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Table holding one row per chunk
            match_function: RPC performing the ANN query (see schema.sql)
            candidate_multiplier: Candidate pool size as a multiple of top_k
            client: Pre-built client, shared with the document store

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        self.match_function = match_function
        self.candidate_multiplier = candidate_multiplier

        logger.info(f"Initialized SupabaseVectorIndex with table: {table_name}")

    def upsert_document(self, doc_id: str, chunks: Sequence[Chunk], vectors: Sequence[List[float]]) -> int:
        records = build_records(doc_id, chunks, vectors)
        if not records:
            return 0

        try:
            self.client.table(self.table_name).upsert(
                [record.to_row() for record in records],
                on_conflict="doc_id,chunk_index"
            ).execute()
        except Exception as e:
            error_msg = f"Failed to store vectors: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg, {"doc_id": doc_id}) from e

        logger.info(f"{len(records)} vectors stored for doc {doc_id}")
        return len(records)

    def search(self, doc_id: str, query_vector: List[float], top_k: int) -> List[ScoredChunk]:
        """
        Native similarity search filtered to one document.

        The RPC examines ``top_k * candidate_multiplier`` candidates before
        returning, which improves recall of the HNSW index.

        Raises:
            VectorStoreError: If the RPC fails or returns malformed rows
        """
        validate_query(query_vector, top_k)

        try:
            response = self.client.rpc(
                self.match_function,
                {
                    "query_embedding": list(query_vector),
                    "filter_doc_id": doc_id,
                    "match_count": top_k,
                    "candidate_count": top_k * self.candidate_multiplier
                }
            ).execute()
        except Exception as e:
            error_msg = f"Failed to search vector store: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg, {"doc_id": doc_id}) from e

        rows = response.data
        if not isinstance(rows, list):
            raise VectorStoreError("Vector search returned a malformed response", {"doc_id": doc_id})

        try:
            results = [
                ScoredChunk(
                    chunk_index=int(row["chunk_index"]),
                    text=row["text"],
                    metadata=ChunkMetadata.from_dict(row["metadata"]),
                    score=float(row["similarity"]),
                )
                for row in rows
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise VectorStoreError(
                f"Vector search returned a malformed row: {str(e)}", {"doc_id": doc_id}
            ) from e

        results.sort(key=lambda chunk: chunk.score, reverse=True)
        return results[:top_k]

    def delete_document(self, doc_id: str) -> int:
        try:
            response = self.client.table(self.table_name).delete().eq("doc_id", doc_id).execute()
        except Exception as e:
            error_msg = f"Failed to delete vectors: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg, {"doc_id": doc_id}) from e

        deleted = len(response.data or [])
        logger.info(f"Deleted {deleted} vectors for doc {doc_id}")
        return deleted

    def fetch_records(self, doc_id: str, limit: Optional[int] = None) -> List[IndexedVectorRecord]:
        try:
            query = (
                self.client.table(self.table_name)
                .select("doc_id, chunk_index, text, embedding, metadata, created_at")
                .eq("doc_id", doc_id)
                .order("id")
            )
            if limit is not None:
                query = query.limit(limit)
            response = query.execute()
            return [self._record_from_row(row) for row in response.data or []]
        except VectorStoreError:
            raise
        except Exception as e:
            error_msg = f"Failed to load vectors: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg, {"doc_id": doc_id}) from e

    def count(self) -> int:
        try:
            response = self.client.table(self.table_name).select("id", count="exact").limit(1).execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count vectors: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg) from e

    def check_search_function(self) -> bool:
        """
        Probe the match RPC and log setup instructions when it is missing.

        Returns:
            True if the RPC answered, False otherwise
        """
        probe = [0.0] * EMBEDDING_DIMENSIONS
        probe[0] = 1.0
        try:
            self.client.rpc(
                self.match_function,
                {"query_embedding": probe, "filter_doc_id": "", "match_count": 1, "candidate_count": 1}
            ).execute()
            logger.info("Vector search function is available")
            return True
        except Exception as e:
            logger.warning(
                f"Vector search function '{self.match_function}' is not usable ({e}). "
                f"Searches will fall back to brute-force scoring until it is created. "
                f"Run the SQL in {SCHEMA_FILE} in the Supabase SQL editor."
            )
            return False

    @staticmethod
    def _record_from_row(row: Dict[str, Any]) -> IndexedVectorRecord:
        embedding = row["embedding"]
        # PostgREST serializes pgvector columns as "[0.1,0.2,...]"
        if isinstance(embedding, str):
            embedding = json.loads(embedding)

        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))

        return IndexedVectorRecord(
            doc_id=row["doc_id"],
            chunk_index=int(row["chunk_index"]),
            text=row["text"],
            embedding=[float(value) for value in embedding],
            metadata=ChunkMetadata.from_dict(row["metadata"]),
            created_at=created_at or datetime.now(timezone.utc),
        )


@dataclass
class SearchOutcome:
    """Ranked chunks tagged with the backend that produced them."""
    backend: str
    chunks: List[ScoredChunk] = field(default_factory=list)
    primary_error: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.primary_error is not None


class ResilientVectorSearch:
    """Try the primary index once and fall back to a secondary one on any failure."""

    def __init__(self, primary: VectorIndex, fallback: Optional[VectorIndex] = None):
        self.primary = primary
        self.fallback = fallback

    def search(self, doc_id: str, query_vector: List[float], top_k: int) -> SearchOutcome:
        """
        Search ``doc_id`` with the primary backend, substituting the fallback
        for this call only if the primary raises.

        Raises:
            ValidationError: If the query is unusable by any backend
            VectorStoreError: If the primary fails and no fallback succeeds
        """
        validate_query(query_vector, top_k)

        try:
            chunks = self.primary.search(doc_id, query_vector, top_k)
            logger.info(f"Found {len(chunks)} chunks via {self.primary.name} search")
            return SearchOutcome(backend=self.primary.name, chunks=chunks)
        except Exception as e:
            primary_error = str(e)
            logger.warning(
                f"{self.primary.name} search failed, using fallback: {primary_error}",
                extra={"doc_id": doc_id, "backend": self.primary.name}
            )

        if self.fallback is None:
            raise VectorStoreError(
                f"Vector search failed: {primary_error}",
                {"doc_id": doc_id, "backend": self.primary.name}
            )

        try:
            chunks = self.fallback.search(doc_id, query_vector, top_k)
        except Exception as e:
            error_msg = f"Fallback search failed after primary error ({primary_error}): {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg, {"doc_id": doc_id, "backend": self.fallback.name}) from e

        logger.info(f"Found {len(chunks)} chunks via {self.fallback.name} search")
        return SearchOutcome(backend=self.fallback.name, chunks=chunks, primary_error=primary_error)
