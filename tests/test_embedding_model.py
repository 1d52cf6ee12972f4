"""Unit tests for EmbeddingModel."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch, MagicMock
import httpx
from services.embedding_model import EmbeddingModel, get_model_info
from services.errors import EmbeddingServiceError, ValidationError


def fake_post(url, headers=None, json=None):
    """Embedding service double: the vector encodes the input text length."""
    response = Mock()
    response.status_code = 200
    response.json.return_value = [float(len(json["inputs"])), 1.0, 0.5]
    return response


def install_client(mock_client_class, post):
    mock_client = MagicMock()
    mock_client.__enter__.return_value.post.side_effect = post
    mock_client_class.return_value = mock_client
    return mock_client.__enter__.return_value


class TestEmbeddingModel:
    """Test suite for EmbeddingModel."""

    def test_initialization_success(self):
        model = EmbeddingModel(api_key="test_key")
        assert model.api_key == "test_key"
        assert model.model_name == "sentence-transformers/all-mpnet-base-v2"
        assert model.batch_size == 100

    def test_initialization_without_api_key(self):
        with pytest.raises(ValueError, match="HUGGINGFACE_API_KEY"):
            EmbeddingModel(api_key=None)

    def test_embed_text_empty_string(self):
        model = EmbeddingModel(api_key="test_key")

        with pytest.raises(ValidationError, match="Text cannot be empty"):
            model.embed_text("")
        with pytest.raises(ValueError, match="Text cannot be empty"):
            model.embed_text("   ")

    def test_embed_batch_empty_list(self):
        assert EmbeddingModel(api_key="test_key").embed_batch([]) == []

    def test_embed_batch_rejects_empty_texts(self):
        model = EmbeddingModel(api_key="test_key")
        with pytest.raises(ValidationError, match="empty texts"):
            model.embed_batch(["fine", "   "])

    @patch('httpx.Client')
    def test_embed_text_success(self, mock_client_class):
        client = install_client(mock_client_class, fake_post)

        model = EmbeddingModel(api_key="test_key")
        result = model.embed_text("test text")

        assert result == [9.0, 1.0, 0.5]
        assert client.post.call_count == 1
        kwargs = client.post.call_args.kwargs
        assert kwargs["json"]["inputs"] == "test text"
        assert kwargs["headers"]["Authorization"] == "Bearer test_key"

    @patch('services.embedding_model.time.sleep')
    @patch('httpx.Client')
    def test_embed_batch_preserves_order_and_count(self, mock_client_class, mock_sleep):
        client = install_client(mock_client_class, fake_post)
        texts = ["x" * (i + 1) for i in range(250)]

        model = EmbeddingModel(api_key="test_key", batch_size=100, batch_delay=0.1)
        result = model.embed_batch(texts)

        assert len(result) == len(texts)
        assert [vector[0] for vector in result] == [float(i + 1) for i in range(250)]
        assert client.post.call_count == 250
        # Pacing between the three batches only
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.1)

    @patch('services.embedding_model.time.sleep')
    @patch('httpx.Client')
    def test_single_batch_does_not_sleep(self, mock_client_class, mock_sleep):
        install_client(mock_client_class, fake_post)

        EmbeddingModel(api_key="test_key").embed_batch(["a", "b", "c"])

        mock_sleep.assert_not_called()

    @patch('httpx.Client')
    def test_single_failure_aborts_whole_call(self, mock_client_class):
        def post(url, headers=None, json=None):
            if json["inputs"] == "bad":
                response = Mock()
                response.status_code = 500
                response.text = "Internal error"
                return response
            return fake_post(url, headers, json)

        install_client(mock_client_class, post)
        model = EmbeddingModel(api_key="test_key")

        with pytest.raises(EmbeddingServiceError, match="status 500") as exc_info:
            model.embed_batch(["good", "bad", "also good"])

        assert exc_info.value.code == "EMBEDDING_SERVICE_ERROR"
        assert exc_info.value.details["stage"] == "embedding"

    @patch('httpx.Client')
    def test_rate_limit_is_reported(self, mock_client_class):
        response = Mock()
        response.status_code = 429
        install_client(mock_client_class, lambda url, headers=None, json=None: response)

        with pytest.raises(EmbeddingServiceError, match="rate limit"):
            EmbeddingModel(api_key="test_key").embed_text("hello")

    @patch('httpx.Client')
    def test_timeout_is_wrapped(self, mock_client_class):
        def post(url, headers=None, json=None):
            raise httpx.TimeoutException("timed out")

        install_client(mock_client_class, post)

        with pytest.raises(EmbeddingServiceError, match="timed out"):
            EmbeddingModel(api_key="test_key", timeout=5.0).embed_text("hello")

    @patch('httpx.Client')
    def test_network_error_is_wrapped(self, mock_client_class):
        def post(url, headers=None, json=None):
            raise httpx.ConnectError("connection refused")

        install_client(mock_client_class, post)

        with pytest.raises(EmbeddingServiceError, match="Network error"):
            EmbeddingModel(api_key="test_key").embed_text("hello")

    @patch('httpx.Client')
    def test_nested_vector_is_flattened(self, mock_client_class):
        response = Mock()
        response.status_code = 200
        response.json.return_value = [[0.1, 0.2, 0.3]]
        install_client(mock_client_class, lambda url, headers=None, json=None: response)

        assert EmbeddingModel(api_key="test_key").embed_text("hello") == [0.1, 0.2, 0.3]

    @patch('httpx.Client')
    def test_malformed_vector_is_rejected(self, mock_client_class):
        response = Mock()
        response.status_code = 200
        response.json.return_value = {"error": "unexpected"}
        install_client(mock_client_class, lambda url, headers=None, json=None: response)

        with pytest.raises(EmbeddingServiceError, match="malformed"):
            EmbeddingModel(api_key="test_key").embed_text("hello")

    @patch.object(EmbeddingModel, 'embed_text')
    def test_warmup(self, mock_embed_text):
        model = EmbeddingModel(api_key="test_key")

        mock_embed_text.return_value = [0.1]
        assert model.warmup() is True

        mock_embed_text.side_effect = EmbeddingServiceError("down")
        assert model.warmup() is False


def test_get_model_info():
    assert get_model_info()["dimensions"] == 768
    assert get_model_info("sentence-transformers/all-MiniLM-L6-v2")["dimensions"] == 384
    assert get_model_info("unknown/model") == get_model_info()
