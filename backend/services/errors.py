"""Error taxonomy shared by the retrieval pipeline and the API layer."""
from typing import Any, Dict, Optional


class RAGError(Exception):
    """Base error with a stable classification code and structured details."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RAGError, ValueError):
    """Missing or inconsistent input; nothing was written."""
    code = "VALIDATION_ERROR"
    status_code = 400


class DimensionMismatchError(ValidationError):
    code = "DIMENSION_MISMATCH"


class ZeroVectorError(ValidationError):
    code = "ZERO_VECTOR"


class DocumentNotFoundError(RAGError):
    code = "DOCUMENT_NOT_FOUND"
    status_code = 404

    def __init__(self, doc_id: str):
        super().__init__(f"Document {doc_id} not found", {"doc_id": doc_id})


class ExtractionError(RAGError):
    code = "EXTRACTION_ERROR"
    status_code = 422


class EmbeddingServiceError(RAGError):
    code = "EMBEDDING_SERVICE_ERROR"
    status_code = 503


class VectorStoreError(RAGError):
    code = "VECTOR_STORE_ERROR"
    status_code = 503


class DocumentStoreError(RAGError):
    code = "DOCUMENT_STORE_ERROR"
    status_code = 503
