"""Builds the service graph once at startup from configuration."""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import tiktoken
from supabase import create_client

from config import Settings
from services.chunking_engine import ChunkingEngine
from services.document_loader import DocumentLoader
from services.document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from services.embedding_model import EmbeddingModel
from services.ingestion import IngestionService
from services.llm_client import LLMClient
from services.retrieval_engine import RetrievalEngine
from services.vector_store import (
    BruteForceVectorIndex,
    InMemoryVectorIndex,
    ResilientVectorSearch,
    SupabaseVectorIndex,
    VectorIndex,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Explicit dependencies handed to the API layer."""
    ingestion: IngestionService
    retrieval: RetrievalEngine
    vector_index: VectorIndex
    document_store: DocumentStore
    backend_mode: str


def build_token_counter() -> Optional[Callable[[str], int]]:
    """Prompt token counter using the o200k_base encoding, if it can be loaded."""
    try:
        encoder = tiktoken.get_encoding("o200k_base")
    except Exception as e:
        logger.warning(f"Token counting disabled, could not load tiktoken encoding: {e}")
        return None
    return lambda text: len(encoder.encode(text))


def build_storage(settings: Settings):
    """
    Select the vector index and document store variants.

    Returns:
        (primary index, fallback index or None, document store)
    """
    if settings.vector_store_backend == "memory":
        index = InMemoryVectorIndex()
        # The in-memory index already scores by brute force
        return index, None, InMemoryDocumentStore()

    if settings.vector_store_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
        client = create_client(settings.supabase_url, settings.supabase_key)
        index = SupabaseVectorIndex(
            table_name=settings.vectors_table,
            match_function=settings.match_function,
            candidate_multiplier=settings.candidate_multiplier,
            client=client,
        )
        index.check_search_function()
        fallback = BruteForceVectorIndex(index, scan_limit=settings.fallback_scan_limit)
        document_store = SupabaseDocumentStore(table_name=settings.documents_table, client=client)
        return index, fallback, document_store

    raise ValueError(f"Unknown VECTOR_STORE_BACKEND: {settings.vector_store_backend}")


def build_services(settings: Settings) -> Services:
    """Construct every service from ``settings``."""
    index, fallback, document_store = build_storage(settings)

    embedding_model = EmbeddingModel(
        api_key=settings.huggingface_api_key,
        model_name=settings.embedding_model,
        batch_size=settings.embedding_batch_size,
        batch_delay=settings.embedding_batch_delay,
        max_concurrency=settings.embedding_max_concurrency,
        timeout=settings.embedding_timeout,
    )
    llm_client = LLMClient(
        api_key=settings.groq_api_key,
        model=settings.generation_model,
        temperature=settings.generation_temperature,
        top_p=settings.generation_top_p,
        max_tokens=settings.generation_max_tokens,
    )

    ingestion = IngestionService(
        document_loader=DocumentLoader(),
        chunking_engine=ChunkingEngine(settings.chunk_size, settings.chunk_overlap),
        embedding_model=embedding_model,
        vector_index=index,
        document_store=document_store,
    )
    retrieval = RetrievalEngine(
        document_store=document_store,
        vector_search=ResilientVectorSearch(index, fallback),
        embedding_model=embedding_model,
        llm_client=llm_client,
        top_k=settings.top_k,
        prompt_preview_chars=settings.prompt_preview_chars,
        source_preview_chars=settings.source_preview_chars,
        token_counter=build_token_counter(),
    )

    logger.info(f"Services initialized with {settings.vector_store_backend} storage")
    return Services(
        ingestion=ingestion,
        retrieval=retrieval,
        vector_index=index,
        document_store=document_store,
        backend_mode=settings.vector_store_backend,
    )
