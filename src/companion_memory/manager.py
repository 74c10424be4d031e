"""Model manager: provider selection and usage statistics."""

import logging
import os
from typing import Any, Dict, List, Optional

from .providers import (
    CompletionProvider,
    LLMProviderError,
    LLMResponse,
    OllamaProvider,
    OpenRouterProvider,
    QuotaExceededError,
)

logger = logging.getLogger(__name__)

PROVIDERS = {
    "ollama": OllamaProvider,
    "openrouter": OpenRouterProvider,
}


class ModelManager(CompletionProvider):
    """Unified entry point to the configured completion provider.

    This class provides:
    - Lazy construction of the provider selected by COMPANION_PROVIDER
    - Separate models for chat replies and summarization
    - Usage statistics, including how often the quota was hit
    """

    def __init__(
        self,
        provider_name: Optional[str] = None,
        chat_model: Optional[str] = None,
        summary_model: Optional[str] = None,
        timeout: Optional[float] = None,
        provider: Optional[CompletionProvider] = None,
    ):
        """Initialize the model manager.

        Args:
            provider_name: ``ollama`` or ``openrouter``. If None, reads from
                COMPANION_PROVIDER or defaults to ``ollama``.
            chat_model: Model for chat replies. If None, the provider default.
            summary_model: Model for summarization. If None, reads from
                COMPANION_SUMMARY_MODEL, falling back to the chat model.
            timeout: Request timeout in seconds. If None, reads from
                COMPANION_TIMEOUT or defaults to 60.
            provider: Ready-made provider instance, mostly for tests.
        """
        self.provider_name = (provider_name or os.getenv("COMPANION_PROVIDER", "ollama")).lower()
        if provider is None and self.provider_name not in PROVIDERS:
            raise ValueError(
                f"Unknown provider '{self.provider_name}'. Available: {sorted(PROVIDERS)}"
            )
        self.chat_model = chat_model
        self.summary_model = summary_model or os.getenv("COMPANION_SUMMARY_MODEL") or None
        self.timeout = timeout or float(os.getenv("COMPANION_TIMEOUT", "60"))
        self._provider = provider

        self.total_calls = 0
        self.successful_calls = 0
        self.failed_calls = 0
        self.quota_errors = 0

        logger.info(f"ModelManager initialized with provider: {self.provider_name}")

    @property
    def provider(self) -> CompletionProvider:
        """Get the provider, initializing it if needed."""
        if self._provider is None:
            provider_cls = PROVIDERS[self.provider_name]
            self._provider = provider_cls(default_model=self.chat_model, timeout=self.timeout)
        return self._provider

    @property
    def name(self) -> str:
        return self.provider.name

    def is_available(self) -> bool:
        return self.provider.is_available()

    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Forward a chat request to the provider and record the outcome.

        Raises:
            LLMProviderError: If the completion fails.
        """
        self.total_calls += 1
        try:
            response = self.provider.chat(
                messages,
                model=model or self.chat_model,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except QuotaExceededError:
            self.failed_calls += 1
            self.quota_errors += 1
            logger.error("Hourly usage limit reached")
            raise
        except LLMProviderError as e:
            self.failed_calls += 1
            logger.error(f"Completion failed: {e}")
            raise

        self.successful_calls += 1
        return response

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics."""
        success_rate = (
            (self.successful_calls / self.total_calls * 100) if self.total_calls > 0 else 0
        )
        return {
            "provider": self.provider_name,
            "chat_model": self.chat_model,
            "summary_model": self.summary_model,
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "quota_errors": self.quota_errors,
            "success_rate": f"{success_rate:.1f}%",
        }
