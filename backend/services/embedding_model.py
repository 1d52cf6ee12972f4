"""Embedding gateway over the Hugging Face Inference API."""
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Sequence
import httpx
from config import (
    HUGGINGFACE_API_KEY,
    EMBEDDING_MODEL,
    EMBEDDING_BATCH_SIZE,
    EMBEDDING_BATCH_DELAY,
    EMBEDDING_MAX_CONCURRENCY,
    EMBEDDING_TIMEOUT,
)
from services.errors import EmbeddingServiceError, ValidationError

logger = logging.getLogger(__name__)

MODEL_INFO: Dict[str, Dict[str, Any]] = {
    "sentence-transformers/all-mpnet-base-v2": {
        "dimensions": 768,
        "max_tokens": 384,
        "description": "General purpose sentence embeddings, high quality",
        "provider": "Hugging Face",
    },
    "sentence-transformers/all-MiniLM-L6-v2": {
        "dimensions": 384,
        "max_tokens": 256,
        "description": "Small and fast sentence embeddings",
        "provider": "Hugging Face",
    },
    "BAAI/bge-base-en-v1.5": {
        "dimensions": 768,
        "max_tokens": 512,
        "description": "Retrieval-tuned English embeddings",
        "provider": "Hugging Face",
    },
}


def get_model_info(model_name: str = EMBEDDING_MODEL) -> Dict[str, Any]:
    """Return dimension and limit info for a model, defaulting to the configured one."""
    return MODEL_INFO.get(model_name, MODEL_INFO[EMBEDDING_MODEL])


class EmbeddingModel:
    """Batches texts to the embedding service with rate-limit pacing."""

    def __init__(
        self,
        api_key: str = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        batch_delay: float = EMBEDDING_BATCH_DELAY,
        max_concurrency: int = EMBEDDING_MAX_CONCURRENCY,
        timeout: float = EMBEDDING_TIMEOUT
    ):
        """
        Initialize the embedding model client.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier (default: sentence-transformers/all-mpnet-base-v2)
            batch_size: Number of texts embedded per batch
            batch_delay: Seconds to sleep between batches
            max_concurrency: Upper bound on in-flight requests within a batch
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        self.api_key = api_key
        self.model_name = model_name
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_concurrency = max(1, max_concurrency)
        self.timeout = timeout
        self.api_url = (
            f"https://router.huggingface.co/hf-inference/models/{model_name}"
            "/pipeline/feature-extraction"
        )

        logger.info(f"Initialized EmbeddingModel with model: {model_name}")

    def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            ValidationError: If text is empty
            EmbeddingServiceError: If the embedding service fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for many texts, preserving order and count.

        Texts are sent in batches of ``batch_size``. Requests within a batch
        run concurrently; consecutive batches are separated by ``batch_delay``.
        A single failed request fails the whole call.

        Args:
            texts: Texts to embed

        Returns:
            One embedding vector per input text, in input order

        Raises:
            ValidationError: If any text is empty
            EmbeddingServiceError: If any request to the embedding service fails
        """
        if not texts:
            return []

        empty = [idx for idx, text in enumerate(texts) if not text or not text.strip()]
        if empty:
            raise ValidationError(
                f"Cannot embed {len(empty)} empty texts",
                {"indexes": empty[:10]}
            )

        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size
        logger.info(
            f"Generating embeddings for {len(texts)} texts in {total_batches} batches "
            f"using {self.model_name}"
        )

        embeddings: List[List[float]] = []
        try:
            with httpx.Client(timeout=self.timeout) as client:
                for start in range(0, len(texts), self.batch_size):
                    batch = list(texts[start:start + self.batch_size])
                    embeddings.extend(self._embed_concurrently(client, batch))

                    logger.debug(f"Processed batch {start // self.batch_size + 1}/{total_batches}")

                    # Pace consecutive batches to respect rate limits
                    if start + self.batch_size < len(texts):
                        time.sleep(self.batch_delay)

        except EmbeddingServiceError as e:
            logger.error(f"Embedding generation failed: {e.message}")
            raise
        except Exception as e:
            error_msg = f"Failed to generate embeddings: {str(e)}"
            logger.error(error_msg, exc_info=True)
            raise EmbeddingServiceError(error_msg, {"stage": "embedding"}) from e

        logger.info(f"Generated {len(embeddings)} embeddings (dimension {len(embeddings[0])})")
        return embeddings

    def _embed_concurrently(self, client: httpx.Client, batch: List[str]) -> List[List[float]]:
        workers = min(self.max_concurrency, len(batch))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._request_embedding, client, text) for text in batch]
            try:
                return [future.result() for future in futures]
            except Exception:
                for future in futures:
                    future.cancel()
                raise

    def _request_embedding(self, client: httpx.Client, text: str) -> List[float]:
        """Embed one text with a single API call."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "inputs": text,
            "options": {
                "wait_for_model": True  # Wait for model to load if sleeping
            }
        }

        try:
            response = client.post(self.api_url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise EmbeddingServiceError(
                f"Embedding request timed out after {self.timeout}s",
                {"stage": "embedding", "original_error": str(e)}
            ) from e
        except httpx.RequestError as e:
            raise EmbeddingServiceError(
                f"Network error calling embedding service: {str(e)}",
                {"stage": "embedding", "original_error": str(e)}
            ) from e

        if response.status_code == 429:
            raise EmbeddingServiceError(
                "Embedding service rate limit exceeded. Please try again later.",
                {"stage": "embedding", "status_code": 429}
            )
        if response.status_code == 401:
            raise EmbeddingServiceError(
                "Embedding service rejected the API key",
                {"stage": "embedding", "status_code": 401}
            )
        if response.status_code != 200:
            raise EmbeddingServiceError(
                f"Embedding request failed with status {response.status_code}: {response.text}",
                {"stage": "embedding", "status_code": response.status_code}
            )

        return self._parse_vector(response.json())

    @staticmethod
    def _parse_vector(data: Any) -> List[float]:
        # Some models answer a single input with [[...]] instead of [...]
        if isinstance(data, list) and data and isinstance(data[0], list):
            data = data[0]

        if not isinstance(data, list) or not data or not all(
            isinstance(value, (int, float)) for value in data
        ):
            raise EmbeddingServiceError(
                "Embedding service returned a malformed vector",
                {"stage": "embedding"}
            )

        return [float(value) for value in data]

    def warmup(self) -> bool:
        """
        Warm up the model with a dummy query to avoid cold start delays.

        Returns:
            True if warmup successful, False otherwise
        """
        try:
            logger.info("Warming up embedding model...")
            start_time = time.time()

            self.embed_text("warmup query")

            elapsed = time.time() - start_time
            logger.info(f"Model warmup completed in {elapsed:.1f}s")
            return True

        except EmbeddingServiceError as e:
            logger.error(f"Model warmup failed: {e.message}")
            return False
