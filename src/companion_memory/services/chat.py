"""Chat turn orchestration around the memory engine."""

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..models.config import TriggerConfig
from ..providers.base import CompletionProvider
from .memory import MemorySegmentManager
from .store import MessageStore
from .trigger import FailureListener, SummarizationScheduler

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are Alex, a warm and thoughtful AI companion. You remember what the user has "
    "shared with you and refer back to it naturally. Keep answers conversational."
)


def load_system_prompt(path: Optional[Union[str, Path]]) -> str:
    """Read the ``systemPrompt`` key of a JSON prompt file.

    Raises:
        ValueError: If the file cannot be read or has no usable prompt.
    """
    if path is None:
        return DEFAULT_SYSTEM_PROMPT
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load system prompt from {path}: {e}") from e
    prompt = data.get("systemPrompt") if isinstance(data, dict) else None
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValueError(f"{path} has no 'systemPrompt' string")
    return prompt


class ChatService:
    """Sends user messages to the provider with summary and memory context.

    Writes to the blob store happen on a background worker so the chat flow
    never waits on disk; ``close`` waits for them.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        store: MessageStore,
        scheduler: SummarizationScheduler,
        memory_manager: Optional[MemorySegmentManager] = None,
        config: Optional[TriggerConfig] = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        model: Optional[str] = None,
    ):
        self.provider = provider
        self.store = store
        self.scheduler = scheduler
        self.memory_manager = memory_manager
        self.config = config or scheduler.config
        self.system_prompt = system_prompt
        self.model = model
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="persist")
        self._closed = False

    def on_summarization_failure(self, listener: FailureListener) -> None:
        self.scheduler.add_failure_listener(listener)

    def build_messages(self, query: str) -> List[Dict[str, str]]:
        """Assemble the provider request for the latest user message."""
        system = self.system_prompt
        summary = self.store.summary
        if summary:
            system += f"\n\nSummary of the conversation so far:\n{summary}"

        if self.memory_manager is not None:
            memories = self.memory_manager.relevant_to(
                query, limit=self.config.relevant_memory_limit
            )
            if memories:
                remembered = "\n".join(f"- {m.content}" for m in memories)
                system += f"\n\nThings you remember that may be relevant:\n{remembered}"

        messages = [{"role": "system", "content": system}]
        for message in self.store.recent(self.config.max_messages_for_context):
            messages.append({"role": message.role, "content": message.text})
        return messages

    def send_message(self, text: str) -> str:
        """Record a user message and return the assistant's reply.

        Raises:
            ValueError: If the message is empty.
            LLMProviderError: If the provider call fails. The user message
                stays in the log.
        """
        text = text.strip()
        if not text:
            raise ValueError("Cannot send an empty message")

        self.store.append(text, is_user=True)
        try:
            response = self.provider.chat(self.build_messages(text), model=self.model)
        except Exception:
            self.persist()
            raise

        reply = response.content.strip()
        self.store.append(reply, is_user=False)
        self.persist()
        self.scheduler.notify_message()
        return reply

    def persist(self) -> Future:
        """Queue a write of the conversation and memory segments."""
        return self._writer.submit(self._write_all)

    def _write_all(self) -> None:
        self.store.save()
        if self.memory_manager is not None:
            self.memory_manager.save()

    def destroy_memories(self) -> None:
        """Wipe messages, summary, memory segments and cached summaries."""
        with self.scheduler.cleared():
            self.store.clear()
            self.scheduler.summarizer.cache.clear()
            if self.memory_manager is not None:
                self.memory_manager.wipe()
        self.persist().result()
        logger.info("All conversation memories destroyed")

    def get_stats(self) -> Dict[str, object]:
        stats: Dict[str, object] = {
            "messages": len(self.store),
            "summary_length": len(self.store.summary),
            "unsummarized": self.scheduler.unsummarized_count,
            "summarization_runs": self.scheduler.runs,
            "summarization_failures": self.scheduler.failures,
            "cache": self.scheduler.summarizer.cache.get_stats(),
        }
        if self.memory_manager is not None:
            stats["memory"] = self.memory_manager.get_stats()
        return stats

    def close(self) -> None:
        """Run the final summarization and flush pending writes."""
        if self._closed:
            return
        self._closed = True
        self.scheduler.shutdown(final_summary=True)
        self._writer.submit(self._write_all)
        self._writer.shutdown(wait=True)
        logger.info("Chat session closed")
