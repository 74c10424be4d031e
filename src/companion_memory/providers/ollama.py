"""Ollama Cloud chat provider implementation."""

import logging
import os
import time
from typing import Any, Dict, List, Optional

import httpx

from .base import (
    CompletionProvider,
    ConfigurationError,
    LLMProviderError,
    LLMResponse,
    MalformedResponseError,
    ProviderTimeoutError,
    error_for_status,
    is_placeholder_key,
)

logger = logging.getLogger(__name__)

OLLAMA_BASE_URL = "https://ollama.com/api"
OLLAMA_DEFAULT_MODEL = "gpt-oss:120b-cloud"


def _token_count(value: Any) -> int:
    # Usage counters are optional; anything but a non-negative integer counts as zero
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(value, 0)


class OllamaProvider(CompletionProvider):
    """Completion provider using the Ollama ``/chat`` endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the Ollama provider.

        Args:
            api_key: Ollama API key. If None, reads from OLLAMA_API_KEY env var.
            base_url: API base URL. If None, reads from OLLAMA_BASE_URL.
            default_model: Default model. If None, reads from OLLAMA_MODEL.
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client (used in tests).
        """
        self.api_key = api_key or os.getenv("OLLAMA_API_KEY")
        self.base_url = (base_url or os.getenv("OLLAMA_BASE_URL", OLLAMA_BASE_URL)).rstrip("/")
        self.default_model = default_model or os.getenv("OLLAMA_MODEL", OLLAMA_DEFAULT_MODEL)
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def is_available(self) -> bool:
        return not is_placeholder_key(self.api_key)

    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Send a non-streaming chat request to Ollama.

        Raises:
            ConfigurationError: If OLLAMA_API_KEY is missing or a placeholder.
            QuotaExceededError: If the hourly usage limit is reached (HTTP 402).
            ProviderTimeoutError: If the request times out.
            MalformedResponseError: If the response has no message content.
            LLMProviderError: For any other failure.
        """
        model_id = model or self.default_model
        if not self.is_available():
            logger.warning("OLLAMA_API_KEY not properly configured")
            raise ConfigurationError(
                "Please set your OLLAMA_API_KEY in the .env file", provider=self.name, model=model_id
            )

        options: Dict[str, Any] = {"temperature": temperature}
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        payload = {
            "model": model_id,
            "messages": messages,
            "stream": False,
            "options": options,
            **kwargs,
        }

        logger.debug(f"API POST {self.base_url}/chat ({len(messages)} messages)")
        started = time.perf_counter()
        try:
            response = self.client.post(
                f"{self.base_url}/chat",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Ollama request timed out after {self.timeout}s")
            raise ProviderTimeoutError(
                f"Ollama request timed out: {e}", provider=self.name, model=model_id
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Ollama transport error: {e}")
            raise LLMProviderError(
                f"Error connecting to Ollama API: {e}",
                provider=self.name,
                model=model_id,
                is_retryable=True,
            ) from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Ollama call took {elapsed_ms:.0f}ms (status {response.status_code})")

        if response.status_code != 200:
            logger.error(f"Ollama request failed with status {response.status_code} - {response.text}")
            raise error_for_status(response.status_code, response.text, provider=self.name, model=model_id)

        return self._parse_response(response, model_id)

    def _parse_response(self, response: httpx.Response, model_id: str) -> LLMResponse:
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Ollama returned invalid JSON: {e}", provider=self.name, model=model_id
            ) from e

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            logger.error("Unexpected API response structure: missing message.content")
            raise MalformedResponseError(
                "Invalid API response format: missing message.content",
                provider=self.name,
                model=model_id,
            )

        usage = {}
        if "prompt_eval_count" in data or "eval_count" in data:
            usage = {
                "prompt_tokens": _token_count(data.get("prompt_eval_count")),
                "completion_tokens": _token_count(data.get("eval_count")),
            }
            usage["total_tokens"] = usage["prompt_tokens"] + usage["completion_tokens"]

        return LLMResponse(
            content=content.strip(),
            model=data.get("model", model_id),
            usage=usage,
            metadata={"created_at": data.get("created_at"), "done_reason": data.get("done_reason")},
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
