"""Companion Memory - conversation memory engine for an AI companion chat client"""

__version__ = "1.0.0"

from .manager import ModelManager
from .models import ConversationContext, MemoryConfig, MemorySegment, Message, TriggerConfig
from .services import ChatService, MemorySegmentManager, MessageStore, Summarizer

__all__ = [
    "ChatService",
    "ConversationContext",
    "MemoryConfig",
    "MemorySegment",
    "MemorySegmentManager",
    "Message",
    "MessageStore",
    "ModelManager",
    "Summarizer",
    "TriggerConfig",
]
