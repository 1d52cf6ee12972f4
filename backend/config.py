"""Configuration management for the PDF Q&A RAG service."""
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173"
).split(",")

# Storage Configuration
VECTOR_STORE_BACKEND = os.getenv("VECTOR_STORE_BACKEND", "supabase")  # "supabase" or "memory"
DOCUMENTS_TABLE = "documents"
VECTORS_TABLE = "document_vectors"
MATCH_FUNCTION = "match_document_vectors"
DOCUMENT_LIST_LIMIT = 50

# Model Configuration
EMBEDDING_MODEL = "sentence-transformers/all-mpnet-base-v2"
EMBEDDING_DIMENSIONS = 768
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "llama-3.3-70b-versatile")
GENERATION_TEMPERATURE = 0.7
GENERATION_TOP_P = 0.95
GENERATION_MAX_TOKENS = 2048

# Embedding Gateway Configuration
EMBEDDING_BATCH_SIZE = 100
EMBEDDING_BATCH_DELAY = 0.1  # seconds between batches
EMBEDDING_MAX_CONCURRENCY = int(os.getenv("EMBEDDING_MAX_CONCURRENCY", "10"))
EMBEDDING_TIMEOUT = 120.0

# Chunking Configuration
CHUNK_SIZE = 1000  # characters
CHUNK_OVERLAP = 200  # characters

# Retrieval Configuration
TOP_K = 3
CANDIDATE_MULTIPLIER = 10
FALLBACK_SCAN_LIMIT = int(os.getenv("FALLBACK_SCAN_LIMIT", "50"))
PROMPT_PREVIEW_CHARS = 800
SOURCE_PREVIEW_CHARS = 300

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@dataclass(frozen=True)
class Settings:
    """Snapshot of the configuration handed to the service container."""
    groq_api_key: Optional[str] = None
    huggingface_api_key: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    vector_store_backend: str = "supabase"
    documents_table: str = DOCUMENTS_TABLE
    vectors_table: str = VECTORS_TABLE
    match_function: str = MATCH_FUNCTION
    embedding_model: str = EMBEDDING_MODEL
    embedding_batch_size: int = EMBEDDING_BATCH_SIZE
    embedding_batch_delay: float = EMBEDDING_BATCH_DELAY
    embedding_max_concurrency: int = EMBEDDING_MAX_CONCURRENCY
    embedding_timeout: float = EMBEDDING_TIMEOUT
    generation_model: str = GENERATION_MODEL
    generation_temperature: float = GENERATION_TEMPERATURE
    generation_top_p: float = GENERATION_TOP_P
    generation_max_tokens: int = GENERATION_MAX_TOKENS
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    top_k: int = TOP_K
    candidate_multiplier: int = CANDIDATE_MULTIPLIER
    fallback_scan_limit: int = FALLBACK_SCAN_LIMIT
    prompt_preview_chars: int = PROMPT_PREVIEW_CHARS
    source_preview_chars: int = SOURCE_PREVIEW_CHARS
    document_list_limit: int = DOCUMENT_LIST_LIMIT
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    cors_origins: List[str] = field(default_factory=lambda: list(CORS_ORIGINS))

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the module-level environment values."""
        return cls(
            groq_api_key=GROQ_API_KEY,
            huggingface_api_key=HUGGINGFACE_API_KEY,
            supabase_url=SUPABASE_URL,
            supabase_key=SUPABASE_KEY,
            vector_store_backend=VECTOR_STORE_BACKEND,
        )
