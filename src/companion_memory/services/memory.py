"""Tiered, importance-weighted memory segments."""

import logging
import re
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models.config import MemoryConfig
from ..models.conversation import Message
from ..models.memory import MemorySegment, MemoryType
from .storage import MEMORY_SEGMENTS_KEY, BlobStore, BlobStoreError, MemoryBlobStore
from .topics import extract_topics, keywords

logger = logging.getLogger(__name__)

PERSONAL_INFO_PATTERNS = (
    "my name is",
    "i am ",
    "i'm ",
    "i live",
    "i work",
    "my birthday",
    "my wife",
    "my husband",
    "my partner",
    "my son",
    "my daughter",
    "my job",
    "my favorite",
    "i prefer",
    "allergic",
)
EMOTIONAL_KEYWORDS = (
    "feel",
    "love",
    "hate",
    "happy",
    "sad",
    "angry",
    "excited",
    "worried",
    "anxious",
    "scared",
    "frustrated",
    "lonely",
    "proud",
)

MAX_COMPRESSED_CHARS = 1000


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip().lower())


class MemorySegmentManager:
    """Scores messages, keeps them as tiered segments and answers relevance queries.

    Segments are held in memory and persisted as one document under the
    ``memory_segments`` key. Capped tiers are consolidated on an interval and
    expired segments are swept at the same time.
    """

    def __init__(self, config: Optional[MemoryConfig] = None, blob_store: Optional[BlobStore] = None):
        self.config = config or MemoryConfig()
        self.blob_store = blob_store or MemoryBlobStore()
        self.segments: Dict[str, MemorySegment] = {}
        self.last_consolidation: Optional[datetime] = None
        self._lock = threading.RLock()

    # Scoring

    def score(self, message: Message, now: Optional[datetime] = None) -> float:
        """Importance of a message in [0, 1]; deterministic for a given ``now``."""
        text = message.text.strip()
        lowered = text.lower()
        now = now or datetime.now()

        score = min(len(text) / 200, 1.0) * 0.2

        priority_hits = sum(1 for k in self.config.priority_keywords if k in lowered)
        score += min(priority_hits * 0.15, 0.35)

        if "?" in text:
            score += 0.1
        if message.is_user:
            score += 0.1
        if any(p in lowered for p in PERSONAL_INFO_PATTERNS):
            score += 0.2
        if any(re.search(rf"\b{k}", lowered) for k in EMOTIONAL_KEYWORDS):
            score += 0.1

        age = now - message.timestamp
        if age <= timedelta(hours=1):
            score += 0.05
        elif age <= timedelta(hours=24):
            score += 0.025

        return max(0.0, min(score, 1.0))

    def classify(self, importance: float) -> MemoryType:
        """Map an importance value to its retention tier."""
        if importance >= self.config.critical_importance_threshold:
            return MemoryType.CRITICAL
        if importance >= self.config.long_term_importance_threshold:
            return MemoryType.LONG_TERM
        if importance >= self.config.medium_term_importance_threshold:
            return MemoryType.MEDIUM_TERM
        return MemoryType.SHORT_TERM

    # Ingestion

    def process_batch(
        self,
        messages: Sequence[Message],
        context: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> List[MemorySegment]:
        """Turn qualifying messages into segments.

        Messages that repeat an existing segment's content reinforce it
        instead of creating a duplicate.

        Args:
            messages: The batch to ingest.
            context: Extra metadata recorded on every new segment.
            now: Reference time, defaults to the current time.

        Returns:
            The segments created or reinforced by this batch.
        """
        now = now or datetime.now()
        touched: List[MemorySegment] = []

        with self._lock:
            by_content = {_normalize(s.content): s for s in self.segments.values()}

            for message in messages:
                text = message.text.strip()
                if len(text) < self.config.min_message_length:
                    continue
                importance = self.score(message, now)
                if importance < self.config.min_message_importance:
                    continue

                existing = by_content.get(_normalize(text))
                if existing is not None:
                    existing.importance = max(existing.importance, importance)
                    new_type = self.classify(existing.importance)
                    if new_type.rank > existing.type.rank:
                        existing.type = new_type
                    existing.mark_accessed(now)
                    touched.append(existing)
                    continue

                segment = MemorySegment(
                    content=text,
                    type=self.classify(importance),
                    importance=importance,
                    created=now,
                    last_accessed=now,
                    topics=extract_topics(text),
                    metadata={
                        "isUser": message.is_user,
                        "sourceTimestamp": message.timestamp.isoformat(),
                        **dict(context or {}),
                    },
                )
                self.segments[segment.id] = segment
                by_content[_normalize(text)] = segment
                touched.append(segment)

        logger.info(f"Processed {len(messages)} messages into {len(touched)} memory segments")
        self.maybe_consolidate(now)
        return touched

    # Maintenance

    def _capacity(self, memory_type: MemoryType) -> Optional[int]:
        if memory_type is MemoryType.SHORT_TERM:
            return self.config.max_short_term_messages
        if memory_type is MemoryType.MEDIUM_TERM:
            return self.config.max_medium_term_segments
        if memory_type is MemoryType.LONG_TERM:
            return self.config.max_long_term_segments
        return None

    def maybe_consolidate(self, now: Optional[datetime] = None) -> int:
        """Consolidate if the configured interval has elapsed since the last run.

        With auto-consolidation disabled only the expiry sweep runs.
        """
        now = now or datetime.now()
        if not self.config.enable_auto_consolidation:
            return self.expire(now)
        if (
            self.last_consolidation is not None
            and now - self.last_consolidation < self.config.consolidation_interval
        ):
            return 0
        return self.consolidate(now)

    def consolidate(self, now: Optional[datetime] = None) -> int:
        """Promote, merge and prune segments in tiers over capacity.

        Returns:
            Number of segments removed (expired, merged or pruned). Always 0
            when auto-consolidation is disabled.
        """
        if not self.config.enable_auto_consolidation:
            return 0

        now = now or datetime.now()
        with self._lock:
            removed = self.expire(now)

            for segment in self.segments.values():
                if segment.access_count >= self.config.promotion_access_count:
                    promoted = segment.type.promoted()
                    if promoted is not segment.type:
                        logger.debug(f"Promoting {segment.id} to {promoted.value}")
                        segment.type = promoted
                        segment.access_count = 0

            for memory_type in MemoryType:
                capacity = self._capacity(memory_type)
                if capacity is None:
                    continue
                removed += self._enforce_capacity(memory_type, capacity, now)

            self.last_consolidation = now

        logger.info(f"Memory consolidation finished, {removed} segments removed")
        return removed

    def _enforce_capacity(self, memory_type: MemoryType, capacity: int, now: datetime) -> int:
        tier = [s for s in self.segments.values() if s.type is memory_type]
        if len(tier) <= capacity:
            return 0

        tier.sort(key=lambda s: s.relevance_score(now), reverse=True)
        if self.config.enable_memory_compression and capacity > 1:
            keep, overflow = tier[: capacity - 1], tier[capacity - 1 :]
            merged = self._merge(overflow, memory_type, now)
            self.segments[merged.id] = merged
        else:
            keep, overflow = tier[:capacity], tier[capacity:]

        for segment in overflow:
            del self.segments[segment.id]
        logger.debug(
            f"{memory_type.value}: kept {len(keep)}, consolidated {len(overflow)} over capacity"
        )
        return len(overflow)

    def _merge(self, segments: List[MemorySegment], memory_type: MemoryType, now: datetime) -> MemorySegment:
        content = "; ".join(s.content for s in segments)
        if len(content) > MAX_COMPRESSED_CHARS:
            content = content[: MAX_COMPRESSED_CHARS - 3] + "..."
        topics = set()
        for s in segments:
            topics |= s.topics
        return MemorySegment(
            content=content,
            type=memory_type,
            importance=sum(s.importance for s in segments) / len(segments),
            created=min(s.created for s in segments),
            last_accessed=max(s.last_accessed for s in segments),
            access_count=sum(s.access_count for s in segments),
            topics=topics,
            metadata={
                "compressed": True,
                "consolidatedFrom": [s.id for s in segments],
                "consolidatedAt": now.isoformat(),
            },
        )

    def expire(self, now: Optional[datetime] = None) -> int:
        """Drop segments older than their tier's expiry."""
        now = now or datetime.now()
        with self._lock:
            expired = [s.id for s in self.segments.values() if s.is_expired(now, self.config)]
            for segment_id in expired:
                del self.segments[segment_id]
        if expired:
            logger.info(f"Expired {len(expired)} memory segments")
        return len(expired)

    # Retrieval

    def relevant_to(self, query: str, limit: int = 5, now: Optional[datetime] = None) -> List[MemorySegment]:
        """Rank live segments against a query and mark the returned ones accessed.

        The ranking weighs how well a segment matches the query (topic overlap
        and keyword containment) against its relevance score. With an empty
        query segments are ranked by relevance score alone.
        """
        now = now or datetime.now()
        query_topics = extract_topics(query)
        query_words = keywords(query)

        ranked = []
        with self._lock:
            for segment in self.segments.values():
                if segment.is_expired(now, self.config):
                    continue
                relevance = segment.relevance_score(now)
                if not query_topics and not query_words:
                    ranked.append((relevance, segment))
                    continue

                topic_match = (
                    len(query_topics & segment.topics) / len(query_topics) if query_topics else 0.0
                )
                content = segment.content.lower()
                word_match = (
                    sum(1 for w in query_words if w in content) / len(query_words)
                    if query_words
                    else 0.0
                )
                match = 0.5 * topic_match + 0.5 * word_match
                if match <= 0:
                    continue
                ranked.append((0.7 * match + 0.3 * relevance, segment))

            ranked.sort(key=lambda pair: pair[0], reverse=True)
            results = [segment for _, segment in ranked[: max(limit, 0)]]
            for segment in results:
                segment.mark_accessed(now)

        return results

    # Persistence and observability

    def load(self) -> int:
        """Load segments from the blob store; unreadable data starts empty."""
        try:
            document = self.blob_store.read_json(MEMORY_SEGMENTS_KEY) or {}
            if not isinstance(document, dict):
                raise ValueError("Memory document must be a JSON object")
            raw_segments = document.get("segments") or []
            if not isinstance(raw_segments, list):
                raise ValueError("'segments' must be a list")
            last = document.get("lastConsolidation")
            if last is not None and not isinstance(last, str):
                raise ValueError("'lastConsolidation' must be a timestamp string")
            segments = [MemorySegment.from_dict(d) for d in raw_segments]
            last_consolidation = datetime.fromisoformat(last) if last else None
        except (BlobStoreError, ValueError) as e:
            logger.error(f"Error loading memory segments, starting fresh: {e}")
            segments, last_consolidation = [], None

        with self._lock:
            self.segments = {s.id: s for s in segments}
            self.last_consolidation = last_consolidation
        logger.info(f"Loaded {len(segments)} memory segments")
        return len(segments)

    def save(self) -> bool:
        with self._lock:
            document = {
                "segments": [s.to_dict() for s in self.segments.values()],
                "lastConsolidation": (
                    self.last_consolidation.isoformat() if self.last_consolidation else None
                ),
            }
        try:
            self.blob_store.write_json(MEMORY_SEGMENTS_KEY, document)
        except BlobStoreError as e:
            logger.error(f"Error saving memory segments: {e}")
            return False
        return True

    def wipe(self) -> None:
        """Forget every segment."""
        with self._lock:
            count = len(self.segments)
            self.segments.clear()
            self.last_consolidation = None
        logger.info(f"Wiped {count} memory segments")

    def get_stats(self) -> Dict[str, Any]:
        """Counts per tier, average importance and total access count."""
        with self._lock:
            segments = list(self.segments.values())
        counts = {t.value: 0 for t in MemoryType}
        for segment in segments:
            counts[segment.type.value] += 1
        return {
            "total_segments": len(segments),
            "by_type": counts,
            "average_importance": (
                sum(s.importance for s in segments) / len(segments) if segments else 0.0
            ),
            "total_access_count": sum(s.access_count for s in segments),
            "last_consolidation": (
                self.last_consolidation.isoformat() if self.last_consolidation else None
            ),
        }
