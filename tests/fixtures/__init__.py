"""Test fixtures for the companion memory tests."""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from companion_memory.models import Message
from companion_memory.providers import CompletionProvider, LLMResponse

SUMMARY_JSON = json.dumps(
    {
        "key_topics": ["work", "hobbies"],
        "important_facts": ["User is a nurse"],
        "user_preferences": ["Likes hiking"],
        "goals": [],
        "recurring_themes": [],
        "summary": "The user talked about nursing shifts and weekend hikes.",
    }
)


class FakeProvider(CompletionProvider):
    """Completion provider that records calls and replays scripted results.

    Each entry of ``responses`` is either a string (returned as the reply
    content) or an exception instance (raised). Once the script is used up
    ``default_reply`` is returned.
    """

    def __init__(self, responses: Optional[List[Any]] = None, default_reply: str = "Sure!", available: bool = True):
        self.responses = list(responses or [])
        self.default_reply = default_reply
        self.available = available
        self.calls: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return self.available

    def chat(self, messages, model=None, temperature=0.7, max_tokens=None, **kwargs) -> LLMResponse:
        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        result = self.responses.pop(0) if self.responses else self.default_reply
        if isinstance(result, Exception):
            raise result
        return LLMResponse(content=result, model=model or "fake-model")


def make_message(text: str, is_user: bool = True, age: timedelta = timedelta(0), now: Optional[datetime] = None) -> Message:
    """Create a message stamped ``age`` before ``now``."""
    return Message(text=text, is_user=is_user, timestamp=(now or datetime.now()) - age)


def make_pairs(count: int, topic: str = "my garden") -> List[Message]:
    """Create ``count`` user/assistant exchanges with distinct, meaningful text."""
    messages = []
    for i in range(count):
        messages.append(make_message(f"Question {i}: what should I plant next in {topic}?"))
        messages.append(make_message(f"Answer {i}: tomatoes grow well in {topic} this season.", is_user=False))
    return messages
