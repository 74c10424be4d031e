"""Memory segment data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Set

from .config import MemoryConfig

# Hours for the time decay of a segment's relevance to halve
RELEVANCE_HALF_LIFE_HOURS = 168.0


class MemoryType(str, Enum):
    """Retention tier of a memory segment, lowest first."""

    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def promoted(self) -> "MemoryType":
        """Return the next tier up, stopping below CRITICAL."""
        if self in (MemoryType.LONG_TERM, MemoryType.CRITICAL):
            return self
        return _TIER_ORDER[self.rank + 1]


_TIER_ORDER = [
    MemoryType.SHORT_TERM,
    MemoryType.MEDIUM_TERM,
    MemoryType.LONG_TERM,
    MemoryType.CRITICAL,
]


def expiry_for(memory_type: MemoryType, config: MemoryConfig) -> Optional[timedelta]:
    """Return the maximum age of a tier, or None if it never expires."""
    if memory_type is MemoryType.SHORT_TERM:
        return config.short_term_expiry
    if memory_type is MemoryType.MEDIUM_TERM:
        return config.medium_term_expiry
    if memory_type is MemoryType.LONG_TERM:
        return config.long_term_expiry
    return None


@dataclass
class MemorySegment:
    """A remembered piece of conversation with its importance and tier."""

    content: str
    type: MemoryType
    importance: float
    id: str = field(default_factory=lambda: f"mem_{uuid.uuid4().hex[:12]}")
    created: datetime = field(default_factory=datetime.now)
    last_accessed: datetime = field(default_factory=datetime.now)
    access_count: int = 0
    topics: Set[str] = field(default_factory=set)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: Optional[datetime] = None, config: Optional[MemoryConfig] = None) -> bool:
        """Check whether the segment has outlived its tier's expiry."""
        max_age = expiry_for(self.type, config or MemoryConfig())
        if max_age is None:
            return False
        return (now or datetime.now()) - self.created > max_age

    def relevance_score(self, now: Optional[datetime] = None) -> float:
        """importance x time decay since last access x (1 + access boost)."""
        hours = max(((now or datetime.now()) - self.last_accessed).total_seconds() / 3600, 0.0)
        time_decay = 0.5 ** (hours / RELEVANCE_HALF_LIFE_HOURS)
        access_boost = min(self.access_count * 0.1, 1.0)
        return self.importance * time_decay * (1 + access_boost)

    def mark_accessed(self, now: Optional[datetime] = None) -> None:
        self.access_count += 1
        self.last_accessed = now or datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type.value,
            "importance": self.importance,
            "created": self.created.isoformat(),
            "lastAccessed": self.last_accessed.isoformat(),
            "accessCount": self.access_count,
            "topics": sorted(self.topics),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemorySegment":
        """Create a segment from its stored JSON form.

        Raises:
            ValueError: If the document is missing required fields.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Memory segment document must be a JSON object: {data!r}")
        try:
            return cls(
                id=data["id"],
                content=data["content"],
                type=MemoryType(data["type"]),
                importance=float(data["importance"]),
                created=datetime.fromisoformat(data["created"]),
                last_accessed=datetime.fromisoformat(data["lastAccessed"]),
                access_count=int(data.get("accessCount", 0)),
                topics=set(data.get("topics") or []),
                metadata=dict(data.get("metadata") or {}),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid memory segment document: {e}") from e
