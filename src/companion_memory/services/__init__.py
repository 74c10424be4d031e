"""Service components of the companion memory engine."""

from .cache import SummaryCache
from .chat import ChatService
from .memory import MemorySegmentManager
from .storage import BlobStore, BlobStoreError, JsonFileBlobStore, MemoryBlobStore
from .store import MessageStore
from .summarizer import EmptyBatchError, Summarizer
from .trigger import SummarizationScheduler, TriggerDecision, TriggerPolicy

__all__ = [
    "BlobStore",
    "BlobStoreError",
    "ChatService",
    "EmptyBatchError",
    "JsonFileBlobStore",
    "MemoryBlobStore",
    "MemorySegmentManager",
    "MessageStore",
    "SummarizationScheduler",
    "Summarizer",
    "SummaryCache",
    "TriggerDecision",
    "TriggerPolicy",
]
