"""Conversation data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Message:
    """A single turn in the conversation."""

    text: str
    is_user: bool
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def role(self) -> str:
        """Return the chat-completion role for this message."""
        return "user" if self.is_user else "assistant"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "isUser": self.is_user,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create a Message from its stored JSON form.

        Raises:
            ValueError: If a required field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Message document must be a JSON object: {data!r}")
        text = data.get("text")
        is_user = data.get("isUser")
        timestamp = data.get("timestamp")
        if not isinstance(text, str) or not isinstance(is_user, bool):
            raise ValueError(f"Invalid message document: {data!r}")
        if not isinstance(timestamp, str):
            raise ValueError(f"Message timestamp missing: {data!r}")
        return cls(text=text, is_user=is_user, timestamp=datetime.fromisoformat(timestamp))


@dataclass(frozen=True)
class ConversationContext:
    """Stored conversation state: the message log plus its running summary."""

    messages: Tuple[Message, ...] = ()
    summary: str = ""
    last_updated: datetime = field(default_factory=datetime.now)

    @classmethod
    def empty(cls) -> "ConversationContext":
        return cls(messages=(), summary="", last_updated=datetime.now())

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def has_summary(self) -> bool:
        return bool(self.summary.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "summary": self.summary,
            "lastUpdated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationContext":
        """Create a context from the stored document.

        Raises:
            ValueError: If the document does not match the stored schema.
        """
        if not isinstance(data, dict):
            raise ValueError("Conversation document must be a JSON object")

        raw_messages = data.get("messages") or []
        if not isinstance(raw_messages, list):
            raise ValueError("'messages' must be a list")

        summary = data.get("summary") or ""
        if not isinstance(summary, str):
            raise ValueError("'summary' must be a string")

        last_updated = data.get("lastUpdated")
        if not isinstance(last_updated, str):
            raise ValueError("'lastUpdated' missing from conversation document")

        return cls(
            messages=tuple(Message.from_dict(m) for m in raw_messages),
            summary=summary,
            last_updated=datetime.fromisoformat(last_updated),
        )
