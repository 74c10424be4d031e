"""Conversation summarization through the completion provider."""

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models.config import MemoryConfig
from ..models.conversation import Message
from ..models.memory import MemorySegment
from ..models.summary import MalformedResponse, ParsedSummary, parse_summary_response
from ..providers.base import CompletionProvider, ConfigurationError, MalformedResponseError
from .cache import SummaryCache
from .topics import extract_key_topics

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[Conversation truncated for efficiency]"
MAX_RENDERED_MEMORIES = 5
MIN_MESSAGE_CHARS = 3

DEFAULT_SUMMARY_PROMPT = (
    "Analyze this conversation and return a JSON summary with key topics, important facts, "
    "user preferences, goals, and a brief summary paragraph. Use the keys key_topics, "
    "important_facts, user_preferences, goals, recurring_themes and summary. "
    "Focus on meaningful content only. Return only valid JSON."
)
INCREMENTAL_PROMPT = (
    "Please update the previous summary with the new messages, keeping the key information. "
    "Return the complete updated summary in the same format as the previous one."
)
MEMORY_AWARE_PROMPT = (
    "Analyze this conversation in the context of the provided memories. Return a JSON summary "
    "with key topics, important facts, user preferences, goals, and a brief summary paragraph "
    "that connects current conversation with relevant memories. Use the keys key_topics, "
    "important_facts, user_preferences, goals, recurring_themes and summary. Focus on "
    "meaningful content and how it relates to existing knowledge. Return only valid JSON."
)
MEMORY_AWARE_SUFFIX = "Take the provided memories into account and connect them with the new messages."

# (word, maximum length) pairs: messages containing the word and shorter
# than the length are pleasantries that carry no information
_BOILERPLATE = (
    (re.compile(r"\bhello\b"), 20),
    (re.compile(r"\bhi\b"), 15),
    (re.compile(r"\bthanks\b"), 20),
    (re.compile(r"\bthank you\b"), 25),
)


class EmptyBatchError(ValueError):
    """Raised when there is nothing worth summarizing in a batch."""


def is_low_value(message: Message) -> bool:
    """Return True for very short messages and greeting/thanks boilerplate."""
    text = message.text.strip()
    if len(text) < MIN_MESSAGE_CHARS:
        return True
    lowered = text.lower()
    return any(pattern.search(lowered) and len(text) < limit for pattern, limit in _BOILERPLATE)


class Summarizer:
    """Produces conversation digests with the completion provider.

    Three instruction flavors are combined as needed: an initial full
    summarization, an incremental update of a previous summary, and a
    memory-aware variant when relevant memory segments are supplied.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        cache: Optional[SummaryCache] = None,
        config: Optional[MemoryConfig] = None,
        model: Optional[str] = None,
        assistant_name: str = "Assistant",
        prompt_path: Optional[Union[str, Path]] = None,
    ):
        self.provider = provider
        self.config = config or MemoryConfig()
        self.cache = cache if cache is not None else SummaryCache.from_config(self.config)
        self.model = model
        self.assistant_name = assistant_name
        self.prompt_path = Path(prompt_path) if prompt_path else None
        self._prompts: Optional[Dict[str, str]] = None
        self.provider_calls = 0

    def summarize(
        self,
        messages: Sequence[Message],
        previous_summary: Optional[str] = None,
        relevant_memories: Optional[Sequence[MemorySegment]] = None,
    ) -> str:
        """Summarize a batch of messages.

        Args:
            messages: Messages to summarize, oldest first.
            previous_summary: Summary to fold the new messages into.
            relevant_memories: Memory segments that give context; at most
                five are rendered.

        Returns:
            The new, non-empty summary text.

        Raises:
            ConfigurationError: If the provider has no usable API key.
            EmptyBatchError: If no message in the batch is worth summarizing.
            MalformedResponseError: If the provider answer is unusable.
            LLMProviderError: For any other provider failure.
        """
        logger.debug("Starting conversation summarization")
        if not self.provider.is_available():
            logger.warning("Completion provider not configured for summarization")
            raise ConfigurationError(
                "Completion provider API key is missing or a placeholder",
                provider=self.provider.name,
            )

        memories = list(relevant_memories or [])[:MAX_RENDERED_MEMORIES]
        filtered = [m for m in messages if not is_low_value(m)]
        if not filtered:
            raise EmptyBatchError("No meaningful conversation to summarize")

        cache_key = self.cache.create_key(messages, memories)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached summarization result")
            return cached

        conversation_text = self.format_conversation(
            filtered, previous_summary=previous_summary, relevant_memories=memories
        )
        system_prompt = self.select_prompt(
            incremental=bool(previous_summary), memory_aware=bool(memories)
        )

        started = time.perf_counter()
        self.provider_calls += 1
        response = self.provider.chat(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": conversation_text},
            ],
            model=self.model,
            temperature=0.3,
        )
        logger.info(f"Summarization call took {(time.perf_counter() - started) * 1000:.0f}ms")

        parsed = parse_summary_response(response.content)
        if isinstance(parsed, MalformedResponse):
            logger.error(f"Rejected summarization response: {parsed.reason}")
            raise MalformedResponseError(
                f"Invalid summarization response: {parsed.reason}",
                provider=self.provider.name,
                model=response.model,
            )

        self._log_parsed(parsed)
        self.cache.set(cache_key, parsed.text)
        return parsed.text

    def _log_parsed(self, parsed: ParsedSummary) -> None:
        if parsed.is_structured:
            fields = ", ".join(sorted(parsed.structured))
            logger.info(f"Structured summary received ({fields}), length: {len(parsed.text)}")
        else:
            logger.info(f"Prose summary received, length: {len(parsed.text)}")

    def format_conversation(
        self,
        messages: Sequence[Message],
        previous_summary: Optional[str] = None,
        relevant_memories: Optional[Sequence[MemorySegment]] = None,
    ) -> str:
        """Render the transcript sent to the summarization model."""
        lines: List[str] = []

        if relevant_memories:
            lines.append("RELEVANT MEMORIES AND CONTEXT:")
            lines.append(
                "The following memories may be relevant to understanding this conversation:\n"
            )
            for i, memory in enumerate(relevant_memories[:MAX_RENDERED_MEMORIES], start=1):
                lines.append(
                    f"Memory {i} ({memory.type.value}, importance: {memory.importance:.2f}):"
                )
                lines.append(memory.content)
                lines.append("")
            lines.append("--- End of relevant memories ---\n")

        if previous_summary:
            lines.append("PREVIOUS SUMMARY:")
            lines.append(
                "This is the summary of the conversation so far. "
                "Please update it with the new messages below:\n"
            )
            lines.append(previous_summary)
            lines.append("\n--- End of previous summary ---\n")
            lines.append("NEW MESSAGES TO INTEGRATE:\n")
        else:
            lines.append("CURRENT CONVERSATION TO ANALYZE:\n")

        for message in messages:
            speaker = "User" if message.is_user else self.assistant_name
            lines.append(f"{speaker}: {message.text}")
            lines.append("")

        text = "\n".join(lines)
        limit = self.config.max_summarization_length
        if len(text) > limit:
            logger.debug(f"Conversation too long ({len(text)}), truncating to {limit}")
            return f"{text[: limit - 100]}\n\n{TRUNCATION_MARKER}"
        return text

    def select_prompt(self, incremental: bool = False, memory_aware: bool = False) -> str:
        """Pick the system instruction for the requested flavors."""
        prompts = self._load_prompts()
        if incremental:
            prompt = INCREMENTAL_PROMPT
            if memory_aware:
                prompt = f"{prompt} {MEMORY_AWARE_SUFFIX}"
            return prompt
        if memory_aware:
            return prompts["enhancedSummarizationPrompt"]
        return prompts["summarizationPrompt"]

    def _load_prompts(self) -> Dict[str, str]:
        if self._prompts is not None:
            return self._prompts

        prompts = {
            "summarizationPrompt": DEFAULT_SUMMARY_PROMPT,
            "enhancedSummarizationPrompt": MEMORY_AWARE_PROMPT,
        }
        if self.prompt_path is not None:
            try:
                with open(self.prompt_path, "r", encoding="utf-8") as f:
                    data: Any = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load summarization prompts from {self.prompt_path}: {e}")
            else:
                for key in prompts:
                    value = data.get(key) if isinstance(data, dict) else None
                    if isinstance(value, str) and value.strip():
                        prompts[key] = value
                    else:
                        logger.warning(f"{key} missing from {self.prompt_path}, using fallback")

        self._prompts = prompts
        return prompts

    def clear_prompt_cache(self) -> None:
        """Force the prompt file to be read again on next use."""
        self._prompts = None
        logger.debug("Cleared summarization prompt cache")

    @staticmethod
    def extract_key_topics(messages: Sequence[Message], limit: int = 10) -> List[str]:
        """Topics mentioned across a batch, used to look up relevant memories."""
        return extract_key_topics((m.text for m in messages), limit=limit)
