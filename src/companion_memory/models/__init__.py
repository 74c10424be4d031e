"""Data models for the companion memory engine."""

from .config import PRESETS, MemoryConfig, TriggerConfig
from .conversation import ConversationContext, Message
from .memory import MemorySegment, MemoryType
from .summary import MalformedResponse, ParsedSummary, parse_summary_response

__all__ = [
    "ConversationContext",
    "Message",
    "MemoryConfig",
    "MemorySegment",
    "MemoryType",
    "MalformedResponse",
    "ParsedSummary",
    "PRESETS",
    "TriggerConfig",
    "parse_summary_response",
]
