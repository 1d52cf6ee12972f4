"""Unit tests for LLMClient."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch
from services.llm_client import LLMClient, LLMResponse, LLMClientError
from services.errors import RAGError
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError


def completion(text="Answer text", prompt_tokens=100, completion_tokens=20):
    response = Mock()
    response.choices = [Mock(message=Mock(content=text))]
    response.usage = Mock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return response


def failing_client(mock_groq_class, error):
    mock_client = Mock()
    mock_client.chat.completions.create.side_effect = error
    mock_groq_class.return_value = mock_client
    return mock_client


class TestLLMClient:
    """Test suite for LLMClient class."""

    def test_initialization_with_api_key(self):
        client = LLMClient(api_key="test_key")
        assert client.api_key == "test_key"
        assert client.model == "llama-3.3-70b-versatile"

    def test_initialization_without_api_key_raises_error(self):
        with patch('services.llm_client.GROQ_API_KEY', None):
            with pytest.raises(ValueError, match="GROQ_API_KEY must be provided"):
                LLMClient()

    def test_build_prompt(self):
        context = "[Source 1 - Page 2, Para 1]\nPro plan costs $29/month"
        prompt = LLMClient.build_prompt("What is the Pro plan price?", context)

        assert prompt.startswith("Based on these document excerpts, answer the question.")
        assert "Document Excerpts:\n" + context in prompt
        assert "Question: What is the Pro plan price?" in prompt
        assert "Cite sources like [Source 1 - Page 3, Para 2]" in prompt
        assert "If the answer is not in the excerpts, say so clearly" in prompt
        assert prompt.endswith("Answer:")

    @patch('services.llm_client.Groq')
    def test_generate_success(self, mock_groq_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = completion("The price is $29.", 150, 12)
        mock_groq_class.return_value = mock_client

        client = LLMClient(api_key="test_key")
        result = client.generate("Test prompt")

        assert isinstance(result, LLMResponse)
        assert result.text == "The price is $29."
        assert result.tokens_input == 150
        assert result.tokens_output == 12
        assert result.model_used == "llama-3.3-70b-versatile"
        assert result.latency_ms >= 0

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Test prompt"}]
        assert kwargs["temperature"] == 0.7
        assert kwargs["top_p"] == 0.95
        assert kwargs["max_tokens"] == 2048
        assert mock_client.chat.completions.create.call_count == 1

    @patch('services.llm_client.Groq')
    def test_generate_overrides(self, mock_groq_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = completion()
        mock_groq_class.return_value = mock_client

        client = LLMClient(api_key="test_key")
        result = client.generate("Prompt", model="llama-3.1-8b-instant", temperature=0.0, max_tokens=64)

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama-3.1-8b-instant"
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 64
        assert result.model_used == "llama-3.1-8b-instant"

    @patch('services.llm_client.Groq')
    def test_empty_content_becomes_empty_text(self, mock_groq_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = completion(text=None)
        mock_groq_class.return_value = mock_client

        assert LLMClient(api_key="test_key").generate("Prompt").text == ""

    @patch('services.llm_client.Groq')
    def test_generate_handles_unexpected_error(self, mock_groq_class):
        failing_client(mock_groq_class, Exception("API Error"))
        client = LLMClient(api_key="test_key")

        with pytest.raises(LLMClientError) as exc_info:
            client.generate("Test prompt", model="llama-3.1-8b-instant")

        error = exc_info.value.error
        assert error.code == "UNKNOWN_ERROR"
        assert "Unexpected error" in error.message
        assert error.details["model"] == "llama-3.1-8b-instant"
        assert error.details["error_type"] == "Exception"

    @patch('services.llm_client.Groq')
    def test_generate_handles_rate_limit_error(self, mock_groq_class):
        mock_client = failing_client(mock_groq_class, RateLimitError(
            message="Rate limit exceeded",
            response=Mock(status_code=429),
            body=None
        ))
        client = LLMClient(api_key="test_key")

        with pytest.raises(LLMClientError) as exc_info:
            client.generate("Test prompt")

        error = exc_info.value.error
        assert error.code == "RATE_LIMIT_ERROR"
        assert error.details["retry_after"] == 60
        # Generation is never retried
        assert mock_client.chat.completions.create.call_count == 1

    @patch('services.llm_client.Groq')
    def test_generate_handles_authentication_error(self, mock_groq_class):
        failing_client(mock_groq_class, AuthenticationError(
            message="Invalid API key",
            response=Mock(status_code=401),
            body=None
        ))
        client = LLMClient(api_key="test_key")

        with pytest.raises(LLMClientError) as exc_info:
            client.generate("Test prompt")

        assert exc_info.value.error.code == "AUTHENTICATION_ERROR"
        assert "Authentication failed" in exc_info.value.error.message

    @patch('services.llm_client.Groq')
    def test_generate_handles_timeout_error(self, mock_groq_class):
        failing_client(mock_groq_class, APITimeoutError(request=Mock()))
        client = LLMClient(api_key="test_key")

        with pytest.raises(LLMClientError) as exc_info:
            client.generate("Test prompt")

        assert exc_info.value.error.code == "TIMEOUT_ERROR"
        assert "timed out" in exc_info.value.error.message

    @patch('services.llm_client.Groq')
    def test_generate_handles_generic_api_error(self, mock_groq_class):
        failing_client(mock_groq_class, APIError(
            message="Service unavailable",
            request=Mock(),
            body=None
        ))
        client = LLMClient(api_key="test_key")

        with pytest.raises(LLMClientError) as exc_info:
            client.generate("Test prompt")

        assert exc_info.value.error.code == "API_ERROR"
        assert "Groq API error" in exc_info.value.error.message

    @patch('services.llm_client.Groq')
    def test_client_error_is_a_service_error(self, mock_groq_class):
        failing_client(mock_groq_class, Exception("boom"))
        client = LLMClient(api_key="test_key")

        with pytest.raises(RAGError) as exc_info:
            client.generate("Test prompt")

        assert exc_info.value.status_code == 503
        assert exc_info.value.code == "UNKNOWN_ERROR"
        assert exc_info.value.details["stage"] == "generation"
        assert "latency_ms" in exc_info.value.details
