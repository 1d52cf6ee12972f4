"""Services for the PDF Q&A RAG service."""
from .errors import (
    RAGError,
    ValidationError,
    DimensionMismatchError,
    ZeroVectorError,
    DocumentNotFoundError,
    ExtractionError,
    EmbeddingServiceError,
    VectorStoreError,
    DocumentStoreError,
)
from .document_loader import DocumentLoader
from .chunking_engine import ChunkingEngine, get_chunk_stats
from .embedding_model import EmbeddingModel, get_model_info
from .similarity import cosine_similarity
from .vector_store import (
    VectorIndex,
    InMemoryVectorIndex,
    BruteForceVectorIndex,
    SupabaseVectorIndex,
    ResilientVectorSearch,
    SearchOutcome,
)
from .document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .retrieval_engine import RetrievalEngine, Answer, SourceCitation
from .ingestion import IngestionService

__all__ = [
    'RAGError', 'ValidationError', 'DimensionMismatchError', 'ZeroVectorError',
    'DocumentNotFoundError', 'ExtractionError', 'EmbeddingServiceError',
    'VectorStoreError', 'DocumentStoreError',
    'DocumentLoader', 'ChunkingEngine', 'get_chunk_stats', 'EmbeddingModel', 'get_model_info',
    'cosine_similarity', 'VectorIndex', 'InMemoryVectorIndex', 'BruteForceVectorIndex',
    'SupabaseVectorIndex', 'ResilientVectorSearch', 'SearchOutcome',
    'DocumentStore', 'InMemoryDocumentStore', 'SupabaseDocumentStore',
    'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError',
    'RetrievalEngine', 'Answer', 'SourceCitation', 'IngestionService',
]
