"""Request and response schemas for the HTTP API."""
from datetime import datetime
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AskRequest(CamelModel):
    doc_id: str = ""
    question: str = ""


class Source(CamelModel):
    """A cited excerpt shown alongside an answer."""
    source_number: int
    page: Union[int, str]
    paragraph_number: Union[int, str]
    paragraph_range: Union[int, str]
    text: str
    similarity: float
    start_char: int
    end_char: int


class AskResponse(CamelModel):
    answer: str
    question: str
    doc_id: str
    sources: List[Source]
    model: Optional[str] = None
    backend: Optional[str] = None
    prompt_length: int = 0
    prompt_tokens: int = 0
    chunks_used: int = 0
    timestamp: datetime


class UploadResponse(CamelModel):
    doc_id: str
    filename: str
    text_length: int
    chunk_count: int
    total_pages: int
    message: str
    database: str


class DocumentSummary(CamelModel):
    doc_id: str
    filename: str
    total_pages: int
    chunk_count: int
    text_length: int
    uploaded_at: datetime
    status: str


class DocumentListResponse(CamelModel):
    documents: List[DocumentSummary]
    total: int


class DeleteResponse(CamelModel):
    message: str
    doc_id: str


class HealthResponse(CamelModel):
    status: str
    version: str
    vector_store: dict
    database: dict
    features: List[str] = Field(default_factory=list)
