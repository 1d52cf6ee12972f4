"""Main entry point for the PDF Q&A RAG API."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, Settings
from logger import setup_logging
from models.api import (
    AskRequest,
    AskResponse,
    DeleteResponse,
    DocumentListResponse,
    DocumentSummary,
    HealthResponse,
    Source,
    UploadResponse,
)
from models.document import DocumentRecord
from services.container import Services, build_services
from services.errors import RAGError, ValidationError

if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
FEATURES = [
    "vector-search",
    "brute-force-fallback",
    "page-tracking",
    "paragraph-tracking",
    "automatic-citations",
]


def _summary(record: DocumentRecord) -> DocumentSummary:
    return DocumentSummary(
        doc_id=record.doc_id,
        filename=record.filename,
        total_pages=record.total_pages,
        chunk_count=record.chunk_count,
        text_length=record.text_length,
        uploaded_at=record.uploaded_at,
        status=record.status,
    )


def create_app(services: Optional[Services] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services; when omitted they are built from
            ``settings`` on startup
        settings: Configuration snapshot (defaults to the environment)
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            logger.info("Initializing PDF Q&A RAG services...")
            try:
                app.state.services = build_services(settings)
            except Exception as e:
                logger.error(f"Failed to initialize services: {e}", exc_info=True)
                raise
        yield

    app = FastAPI(
        title="PDF Q&A RAG",
        description="Ask questions about uploaded PDFs with cited answers",
        version=API_VERSION,
        lifespan=lifespan
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RAGError)
    async def rag_error_handler(request: Request, exc: RAGError):
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": f"Internal server error: {str(exc)}", "details": {}}}
        )

    def get_services(request: Request) -> Services:
        return request.app.state.services

    @app.post("/api/upload", response_model=UploadResponse)
    def upload(request: Request, pdf: UploadFile = File(...)) -> UploadResponse:
        """Extract, chunk, embed and store an uploaded PDF."""
        if pdf.content_type != "application/pdf":
            raise ValidationError("Only PDF files are allowed", {"content_type": pdf.content_type})

        raw_bytes = pdf.file.read(settings.max_upload_bytes + 1)
        if len(raw_bytes) > settings.max_upload_bytes:
            raise ValidationError(
                "File exceeds the upload size limit",
                {"max_bytes": settings.max_upload_bytes}
            )

        svc = get_services(request)
        record = svc.ingestion.ingest(pdf.filename or "document.pdf", raw_bytes)
        return UploadResponse(
            doc_id=record.doc_id,
            filename=record.filename,
            text_length=record.text_length,
            chunk_count=record.chunk_count,
            total_pages=record.total_pages,
            message="Document processed and stored",
            database=svc.backend_mode,
        )

    @app.post("/api/ask", response_model=AskResponse)
    def ask(request: Request, body: AskRequest) -> AskResponse:
        """Answer a question about one document with cited sources."""
        answer = get_services(request).retrieval.answer_question(body.doc_id, body.question)
        return AskResponse(
            answer=answer.answer,
            question=answer.question,
            doc_id=answer.doc_id,
            sources=[
                Source(
                    source_number=source.source_number,
                    page=source.page,
                    paragraph_number=source.paragraph_number,
                    paragraph_range=source.paragraph_range,
                    text=source.text,
                    similarity=source.similarity,
                    start_char=source.start_char,
                    end_char=source.end_char,
                )
                for source in answer.sources
            ],
            model=answer.model,
            backend=answer.backend,
            prompt_length=answer.prompt_length,
            prompt_tokens=answer.prompt_tokens,
            chunks_used=answer.chunks_used,
            timestamp=answer.timestamp,
        )

    @app.get("/api/documents", response_model=DocumentListResponse)
    def list_documents(request: Request) -> DocumentListResponse:
        records = get_services(request).ingestion.list_documents(settings.document_list_limit)
        return DocumentListResponse(documents=[_summary(record) for record in records], total=len(records))

    @app.get("/api/document/{doc_id}", response_model=DocumentSummary)
    def get_document(request: Request, doc_id: str) -> DocumentSummary:
        return _summary(get_services(request).ingestion.get_document(doc_id))

    @app.delete("/api/document/{doc_id}", response_model=DeleteResponse)
    def delete_document(request: Request, doc_id: str) -> DeleteResponse:
        get_services(request).ingestion.delete_document(doc_id)
        return DeleteResponse(message="Document deleted successfully", doc_id=doc_id)

    @app.get("/api/health", response_model=HealthResponse)
    def health(request: Request):
        """Health check with storage counts."""
        svc = get_services(request)
        try:
            counts = svc.ingestion.stats()
        except RAGError as e:
            return JSONResponse(status_code=503, content={"status": "error", "message": e.message})

        return HealthResponse(
            status="ok",
            version=API_VERSION,
            vector_store={"mode": svc.backend_mode, "primary": svc.vector_index.name},
            database={"connected": True, **counts},
            features=FEATURES,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting PDF Q&A RAG API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
