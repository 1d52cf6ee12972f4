"""
Document Ingestion Script for the PDF Q&A RAG service.

This script:
1. Builds the configured services (Supabase or in-memory storage)
2. Warms up the embedding model
3. Ingests every PDF in a directory (extract, chunk, embed, store)
4. Reports the stored document and vector counts

Usage:
    python ingest_documents.py ./pdfs
    python ingest_documents.py ./pdfs --warmup
"""
import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from config import Settings
from services.container import build_services
from services.document_loader import DocumentLoader
from services.errors import RAGError

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a directory of PDFs")
    parser.add_argument("directory", help="Directory containing PDF files")
    parser.add_argument("--warmup", action="store_true", help="Warm up the embedding model first")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main ingestion process. Returns the process exit code."""
    args = parse_args(argv)

    logger.info("=" * 60)
    logger.info("Starting document ingestion")
    logger.info("=" * 60)

    services = build_services(Settings.from_env())

    if args.warmup:
        logger.info("Warming up embedding model...")
        services.ingestion.embedding_model.warmup()

    pdf_files = DocumentLoader.list_pdf_files(args.directory)
    if not pdf_files:
        logger.error(f"No PDF files found in {args.directory}")
        return 1

    failed = 0
    for filename, path in pdf_files:
        try:
            record = services.ingestion.ingest(filename, Path(path).read_bytes())
            logger.info(f"  ✓ {filename}: doc {record.doc_id}, {record.chunk_count} chunks, {record.total_pages} pages")
        except (RAGError, OSError) as e:
            # Skip unreadable files and continue with the rest
            failed += 1
            logger.error(f"  ✗ {filename}: {e}")

    stats = services.ingestion.stats()
    logger.info("=" * 60)
    logger.info("INGESTION COMPLETE")
    logger.info(f"Files processed: {len(pdf_files) - failed}, failed: {failed}")
    logger.info(f"Documents stored: {stats['documents']}, vectors stored: {stats['vectors']}")
    logger.info("=" * 60)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
