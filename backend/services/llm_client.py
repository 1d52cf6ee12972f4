"""Generation client for the Groq API and the grounded-answer prompt."""
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import (
    GROQ_API_KEY,
    GENERATION_MODEL,
    GENERATION_TEMPERATURE,
    GENERATION_TOP_P,
    GENERATION_MAX_TOKENS,
)
from services.errors import RAGError

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(RAGError):
    """Generation-stage failure carrying a structured LLMError."""

    status_code = 503

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message, {"stage": "generation", **error.details})
        self.code = error.code


class LLMClient:
    """Client for single-shot text generation through Groq."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GENERATION_MODEL,
        temperature: float = GENERATION_TEMPERATURE,
        top_p: float = GENERATION_TOP_P,
        max_tokens: int = GENERATION_MAX_TOKENS
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Default model name
            temperature: Sampling temperature
            top_p: Nucleus sampling threshold
            max_tokens: Maximum output tokens
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self.client = Groq(api_key=self.api_key)
        logger.info(f"LLMClient initialized with model {model}")

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """
        Generate a completion for ``prompt``. No retries are attempted.

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = model or self.model
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}")

            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {
                        "role": "user",
                        "content": prompt
                    }
                ],
                temperature=self.temperature if temperature is None else temperature,
                top_p=self.top_p if top_p is None else top_p,
                max_tokens=self.max_tokens if max_tokens is None else max_tokens
            )

            latency_ms = int((time.time() - start_time) * 1000)
            text = response.choices[0].message.content or ""
            tokens_input = response.usage.prompt_tokens
            tokens_output = response.usage.completion_tokens

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=model
            )

        except RateLimitError as e:
            raise self._failure(
                "RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60
            )
        except AuthenticationError as e:
            raise self._failure(
                "AUTHENTICATION_ERROR", "Authentication failed. Please check your API key.",
                model, start_time, e
            )
        except APITimeoutError as e:
            raise self._failure(
                "TIMEOUT_ERROR", "Request timed out. Please try again.",
                model, start_time, e
            )
        except APIError as e:
            raise self._failure(
                "API_ERROR", f"Groq API error: {str(e)}",
                model, start_time, e
            )
        except Exception as e:
            raise self._failure(
                "UNKNOWN_ERROR", f"Unexpected error during generation: {str(e)}",
                model, start_time, e, error_type=type(e).__name__
            )

    @staticmethod
    def _failure(
        code: str,
        message: str,
        model: str,
        start_time: float,
        original: Exception,
        **extra: Any
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = LLMError(
            code=code,
            message=message,
            details={
                "model": model,
                "latency_ms": latency_ms,
                "original_error": str(original),
                **extra
            }
        )
        logger.error(
            f"Generation failed ({code}): model={model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return LLMClientError(error)

    @staticmethod
    def build_prompt(question: str, context: str) -> str:
        """
        Build the grounded-answer prompt.

        Args:
            question: User question
            context: Numbered, cited document excerpts

        Returns:
            Complete prompt string
        """
        return f"""Based on these document excerpts, answer the question.
Document Excerpts:
{context}

Question: {question}

Instructions:
- Answer ONLY using information from the excerpts above
- Cite sources like [Source 1 - Page 3, Para 2]
- If the answer is not in the excerpts, say so clearly
- Be concise and specific

Answer:"""
