"""AI completion providers."""

from .base import (
    AuthenticationError,
    CompletionProvider,
    ConfigurationError,
    LLMProviderError,
    LLMResponse,
    MalformedResponseError,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimitError,
)
from .ollama import OllamaProvider
from .openrouter import OpenRouterProvider

__all__ = [
    "AuthenticationError",
    "CompletionProvider",
    "ConfigurationError",
    "LLMProviderError",
    "LLMResponse",
    "MalformedResponseError",
    "OllamaProvider",
    "OpenRouterProvider",
    "ProviderTimeoutError",
    "QuotaExceededError",
    "RateLimitError",
]
