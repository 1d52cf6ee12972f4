"""Integration tests for EmbeddingModel with real API (optional)."""
import sys
from pathlib import Path
import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from services.embedding_model import EmbeddingModel
from services.similarity import cosine_similarity
from config import HUGGINGFACE_API_KEY, EMBEDDING_DIMENSIONS


@pytest.mark.skipif(
    not HUGGINGFACE_API_KEY,
    reason="HUGGINGFACE_API_KEY not set"
)
class TestEmbeddingIntegration:
    """Integration tests with real Hugging Face API."""

    def test_real_embed_text(self):
        result = EmbeddingModel().embed_text("Refunds are processed within five business days.")

        assert len(result) == EMBEDDING_DIMENSIONS
        assert all(isinstance(x, float) for x in result)

    def test_real_embed_batch_ranks_related_text_higher(self):
        model = EmbeddingModel()
        question, related, unrelated = model.embed_batch([
            "How long does a refund take?",
            "Refunds are processed within five business days.",
            "The office cafeteria opens at eight in the morning.",
        ])

        assert cosine_similarity(question, related) > cosine_similarity(question, unrelated)
