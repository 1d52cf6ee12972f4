"""Retrieval engine: question embedding, resilient search and grounded answering."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Union

from models.chunk import ScoredChunk
from services.document_store import DocumentStore
from services.embedding_model import EmbeddingModel
from services.errors import DocumentNotFoundError, ValidationError
from services.llm_client import LLMClient
from services.vector_store import ResilientVectorSearch, SearchOutcome
from config import TOP_K, PROMPT_PREVIEW_CHARS, SOURCE_PREVIEW_CHARS

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = (
    "No relevant information found. Please check if:\n"
    "1. The document was uploaded successfully\n"
    "2. Your question relates to the document content"
)


@dataclass
class SourceCitation:
    """User-facing citation for one retrieved chunk."""
    source_number: int
    page: int
    paragraph_number: int
    paragraph_range: Union[int, str]
    text: str
    similarity: float
    start_char: int
    end_char: int


@dataclass
class Answer:
    """Generated answer with the sources it was grounded on."""
    answer: str
    question: str
    doc_id: str
    sources: List[SourceCitation]
    backend: str
    model: Optional[str] = None
    prompt_length: int = 0
    prompt_tokens: int = 0
    chunks_used: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    return text if len(text) <= limit else text[:limit] + "..."


class RetrievalEngine:
    """Orchestrate query embedding, chunk retrieval and answer generation."""

    def __init__(
        self,
        document_store: DocumentStore,
        vector_search: ResilientVectorSearch,
        embedding_model: EmbeddingModel,
        llm_client: LLMClient,
        top_k: int = TOP_K,
        prompt_preview_chars: int = PROMPT_PREVIEW_CHARS,
        source_preview_chars: int = SOURCE_PREVIEW_CHARS,
        token_counter: Optional[Callable[[str], int]] = None
    ):
        """
        Initialize the retrieval engine.

        Args:
            document_store: Lookup for ingested documents
            vector_search: Primary/fallback vector search
            embedding_model: Embeds the question
            llm_client: Generates the answer
            top_k: Number of chunks used as context
            prompt_preview_chars: Per-chunk character limit inside the prompt
            source_preview_chars: Per-source character limit in the response
            token_counter: Optional prompt token counter, for logging and metadata
        """
        self.document_store = document_store
        self.vector_search = vector_search
        self.embedding_model = embedding_model
        self.llm_client = llm_client
        self.top_k = top_k
        self.prompt_preview_chars = prompt_preview_chars
        self.source_preview_chars = source_preview_chars
        self.token_counter = token_counter
        logger.info("Initialized RetrievalEngine")

    def retrieve(self, doc_id: str, question: str, top_k: Optional[int] = None) -> SearchOutcome:
        """
        Embed the question and search the document's chunks.

        Returns:
            SearchOutcome naming the backend that served the request

        Raises:
            EmbeddingServiceError: If the question cannot be embedded
            VectorStoreError: If both search backends fail
        """
        logger.debug(f"Embedding question: {question[:100]}")
        query_embedding = self.embedding_model.embed_text(question)

        outcome = self.vector_search.search(doc_id, query_embedding, top_k or self.top_k)
        for rank, chunk in enumerate(outcome.chunks, start=1):
            logger.info(
                f"  {rank}. Score: {chunk.score:.4f}, Page: {chunk.metadata.page}, "
                f"Para: {chunk.metadata.paragraph_number}"
            )
        return outcome

    def answer_question(self, doc_id: str, question: str) -> Answer:
        """
        Answer a question strictly from the document's most similar chunks.

        When nothing is retrieved a fixed informational answer is returned and
        the generation service is not called.

        Raises:
            ValidationError: If doc_id or question is missing
            DocumentNotFoundError: If the document does not exist
            EmbeddingServiceError: If the question cannot be embedded
            VectorStoreError: If both search backends fail
            LLMClientError: If generation fails
        """
        if not doc_id or not question or not question.strip():
            raise ValidationError("Missing docId or question")

        if self.document_store.get(doc_id) is None:
            raise DocumentNotFoundError(doc_id)

        logger.info(f"Question for doc {doc_id}: {question[:100]}")
        outcome = self.retrieve(doc_id, question)

        if not outcome.chunks:
            logger.info(f"No chunks retrieved for doc {doc_id}")
            return Answer(
                answer=NO_RESULTS_ANSWER,
                question=question,
                doc_id=doc_id,
                sources=[],
                backend=outcome.backend,
            )

        context = self.build_context(outcome.chunks)
        prompt = LLMClient.build_prompt(question, context)
        prompt_tokens = self.token_counter(prompt) if self.token_counter else 0
        logger.info(f"Prompt length: {len(prompt)} characters, {prompt_tokens} tokens")

        response = self.llm_client.generate(prompt)
        logger.info(f"Answer generated for doc {doc_id} using {outcome.backend} search")

        return Answer(
            answer=response.text,
            question=question,
            doc_id=doc_id,
            sources=self.build_sources(outcome.chunks),
            backend=outcome.backend,
            model=response.model_used,
            prompt_length=len(prompt),
            prompt_tokens=prompt_tokens,
            chunks_used=len(outcome.chunks),
        )

    def build_context(self, chunks: Sequence[ScoredChunk]) -> str:
        """Numbered, page- and paragraph-cited excerpts for the prompt."""
        blocks = []
        for idx, chunk in enumerate(chunks, start=1):
            text = truncate(chunk.text, self.prompt_preview_chars)
            blocks.append(
                f"[Source {idx} - Page {chunk.metadata.page}, "
                f"Para {chunk.metadata.paragraph_number}]\n{text}"
            )
        return "\n\n".join(blocks)

    def build_sources(self, chunks: Sequence[ScoredChunk]) -> List[SourceCitation]:
        return [
            SourceCitation(
                source_number=idx,
                page=chunk.metadata.page,
                paragraph_number=chunk.metadata.paragraph_number,
                paragraph_range=chunk.metadata.paragraph_range,
                text=truncate(chunk.text, self.source_preview_chars),
                similarity=chunk.score,
                start_char=chunk.metadata.start_char,
                end_char=chunk.metadata.end_char,
            )
            for idx, chunk in enumerate(chunks, start=1)
        ]
