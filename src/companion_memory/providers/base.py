"""Base classes for AI completion providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Values shipped in the example .env files, treated the same as a missing key
PLACEHOLDER_KEY_MARKERS = ("your-ollama-api-key-here", "your-openrouter-api-key-here", "your-api-key")

QUOTA_EXCEEDED_MESSAGE = "I'm so sorry, but your hourly limit is reached."

VALID_ROLES = ("system", "user", "assistant", "tool")


@dataclass
class LLMResponse:
    """Response from a completion provider."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


def is_placeholder_key(api_key: Optional[str]) -> bool:
    """Return True if the key is missing or still an example placeholder."""
    if not api_key or not api_key.strip():
        return True
    lowered = api_key.strip().lower()
    return any(marker in lowered for marker in PLACEHOLDER_KEY_MARKERS)


class CompletionProvider(ABC):
    """Abstract base class for AI completion providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        ...

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Send role-tagged messages and return the assistant reply.

        Args:
            messages: Messages with ``role`` (system, user, assistant, tool)
                and ``content`` keys, oldest first.
            model: The model to use. If None, uses the default model.
            temperature: Sampling temperature (0.0-2.0).
            max_tokens: Maximum tokens to generate.
            **kwargs: Additional provider-specific parameters.

        Returns:
            LLMResponse containing the reply text and metadata.

        Raises:
            LLMProviderError: If the completion fails.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured with a usable API key."""
        ...

    def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Single-prompt convenience wrapper around ``chat``."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return self.chat(messages, model=model, **kwargs)


class LLMProviderError(Exception):
    """Base exception for completion provider errors."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        model: str = "",
        is_retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.is_retryable = is_retryable
        self.status_code = status_code


class ConfigurationError(LLMProviderError):
    """Raised when the API credential is missing or still a placeholder."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=False)


class AuthenticationError(LLMProviderError):
    """Raised when the provider rejects the credential."""

    def __init__(self, message: str, provider: str = "", model: str = "", status_code: Optional[int] = None):
        super().__init__(message, provider, model, is_retryable=False, status_code=status_code)


class QuotaExceededError(LLMProviderError):
    """Raised when the hourly usage limit of the account is reached."""

    user_message = QUOTA_EXCEEDED_MESSAGE

    def __init__(self, message: str, provider: str = "", model: str = "", status_code: Optional[int] = 402):
        super().__init__(message, provider, model, is_retryable=False, status_code=status_code)


class RateLimitError(LLMProviderError):
    """Raised when rate limited by the provider."""

    def __init__(self, message: str, provider: str = "", model: str = "", status_code: Optional[int] = 429):
        super().__init__(message, provider, model, is_retryable=True, status_code=status_code)


class ProviderTimeoutError(LLMProviderError):
    """Raised when the provider does not answer within the timeout."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=True)


class MalformedResponseError(LLMProviderError):
    """Raised when the provider answers without the expected fields."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=False)


def error_for_status(
    status_code: int, body: str, provider: str = "", model: str = ""
) -> LLMProviderError:
    """Map a non-200 provider status to the matching exception."""
    message = f"{provider or 'provider'} request failed with status {status_code}: {body}"
    if status_code == 402:
        return QuotaExceededError(message, provider=provider, model=model, status_code=status_code)
    if status_code == 429:
        return RateLimitError(message, provider=provider, model=model, status_code=status_code)
    if status_code in (401, 403):
        return AuthenticationError(message, provider=provider, model=model, status_code=status_code)
    return LLMProviderError(
        message,
        provider=provider,
        model=model,
        is_retryable=status_code >= 500 or status_code == 408,
        status_code=status_code,
    )
