"""Cache of summarization results keyed by message-batch fingerprint."""

import hashlib
import logging
import threading
import time
from typing import Any, Dict, Iterable, Optional, Sequence

from ..models.config import MemoryConfig
from ..models.conversation import Message
from ..models.memory import MemorySegment

logger = logging.getLogger(__name__)

NO_MEMORIES = "no-memories"


class SummaryCache:
    """TTL cache that avoids re-summarizing an identical message batch."""

    def __init__(self, ttl_seconds: float = 3600, cleanup_threshold: int = 10):
        self.ttl_seconds = ttl_seconds
        self.cleanup_threshold = cleanup_threshold
        self.cache: Dict[str, Dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: MemoryConfig) -> "SummaryCache":
        return cls(
            ttl_seconds=config.cache_expiry.total_seconds(),
            cleanup_threshold=config.cache_cleanup_threshold,
        )

    @staticmethod
    def create_key(
        messages: Sequence[Message],
        relevant_memories: Optional[Iterable[MemorySegment]] = None,
    ) -> str:
        """Fingerprint a message batch and the memory segments used with it.

        The key combines message count, total text length and a SHA-256 digest
        of the ``isUser:text`` tuples. Memory ids are sorted before hashing so
        the key does not depend on the order they were retrieved in.
        """
        total_length = sum(len(m.text) for m in messages)
        content = "|".join(f"{str(m.is_user).lower()}:{m.text}" for m in messages)
        content_hash = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]

        memory_ids = sorted(m.id for m in relevant_memories or [])
        if memory_ids:
            memory_hash = hashlib.sha256(",".join(memory_ids).encode("utf-8")).hexdigest()[:8]
        else:
            memory_hash = NO_MEMORIES

        return f"{len(messages)}:{total_length}:{content_hash}:{memory_hash}"

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        return time.time() - entry["computed_at"] > self.ttl_seconds

    def get(self, key: str) -> Optional[str]:
        """Get a summary if present and not older than the TTL."""
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                self.misses += 1
                return None

            if self._is_expired(entry):
                del self.cache[key]
                self.misses += 1
                return None

            self.hits += 1
            return entry["summary"]

    def set(self, key: str, summary: str) -> None:
        """Store a summary, sweeping expired entries once the cache grows."""
        with self._lock:
            if len(self.cache) > self.cleanup_threshold:
                self._sweep()
            self.cache[key] = {"summary": summary, "computed_at": time.time()}

    def cleanup_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        with self._lock:
            return self._sweep()

    def _sweep(self) -> int:
        expired = [k for k, entry in self.cache.items() if self._is_expired(entry)]
        for key in expired:
            del self.cache[key]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self.cache.clear()
            self.hits = 0
            self.misses = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            size, hits, misses = len(self.cache), self.hits, self.misses
        total_requests = hits + misses
        return {
            "size": size,
            "hits": hits,
            "misses": misses,
            "hit_rate": hits / total_requests if total_requests > 0 else 0,
            "ttl_seconds": self.ttl_seconds,
            "cleanup_threshold": self.cleanup_threshold,
        }
