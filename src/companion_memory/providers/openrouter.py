"""OpenRouter completion provider implementation."""

import logging
import os
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

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

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODEL = "deepseek/deepseek-chat-v3.1"


class OpenRouterProvider(CompletionProvider):
    """Completion provider using the OpenRouter API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: Optional[str] = None,
        timeout: float = 60.0,
        app_name: str = "companion-memory",
    ):
        """Initialize the OpenRouter provider.

        Args:
            api_key: OpenRouter API key. If None, reads from OPENROUTER_API_KEY env var.
            default_model: Default model. If None, reads from OPENROUTER_MODEL.
            timeout: Request timeout in seconds.
            app_name: Application name for OpenRouter headers.
        """
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        self.default_model = default_model or os.getenv("OPENROUTER_MODEL", OPENROUTER_DEFAULT_MODEL)
        self.timeout = timeout
        self.app_name = app_name
        self._client: Optional[OpenAI] = None

    @property
    def name(self) -> str:
        return "openrouter"

    @property
    def client(self) -> OpenAI:
        """Get or create the OpenAI client configured for OpenRouter."""
        if self._client is None:
            if is_placeholder_key(self.api_key):
                raise ConfigurationError(
                    "OpenRouter API key not configured. "
                    "Set OPENROUTER_API_KEY environment variable.",
                    provider=self.name,
                )
            self._client = OpenAI(
                base_url=OPENROUTER_BASE_URL,
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
                default_headers={"X-Title": self.app_name},
            )
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
        """Send a chat completion request through OpenRouter.

        Raises:
            ConfigurationError: If OPENROUTER_API_KEY is missing or a placeholder.
            QuotaExceededError: If the account has run out of credits (HTTP 402).
            LLMProviderError: For any other failure.
        """
        model_id = model or self.default_model
        client = self.client
        logger.info(f"Requesting completion from OpenRouter model: {model_id}")

        try:
            response = client.chat.completions.create(
                model=model_id,
                messages=messages,  # type: ignore[arg-type]
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenRouter request timed out after {self.timeout}s")
            raise ProviderTimeoutError(str(e), provider=self.name, model=model_id) from e
        except openai.APIStatusError as e:
            logger.error(f"OpenRouter error {e.status_code}: {e.message}")
            raise error_for_status(e.status_code, e.message, provider=self.name, model=model_id) from e
        except openai.APIConnectionError as e:
            logger.error(f"OpenRouter connection error: {e}")
            raise LLMProviderError(
                str(e), provider=self.name, model=model_id, is_retryable=True
            ) from e

        if not response.choices or response.choices[0].message.content is None:
            raise MalformedResponseError(
                "OpenRouter response has no message content", provider=self.name, model=model_id
            )

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=response.choices[0].message.content.strip(),
            model=model_id,
            usage=usage,
            metadata={"id": response.id, "created": response.created},
        )
