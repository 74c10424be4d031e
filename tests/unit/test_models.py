"""Tests for the data models."""

from datetime import datetime, timedelta

import pytest

from companion_memory.models import (
    PRESETS,
    ConversationContext,
    MemoryConfig,
    MemorySegment,
    MemoryType,
    Message,
    TriggerConfig,
)
from companion_memory.models.memory import expiry_for


class TestMessage:
    """Test the Message model."""

    def test_role(self):
        """Test role mapping for chat requests."""
        assert Message("hi there", is_user=True).role == "user"
        assert Message("hello", is_user=False).role == "assistant"

    def test_to_dict_and_back(self):
        """Test the stored JSON form."""
        stamp = datetime(2024, 5, 1, 12, 30)
        message = Message("I adopted a cat", is_user=True, timestamp=stamp)

        data = message.to_dict()
        assert data == {"text": "I adopted a cat", "isUser": True, "timestamp": stamp.isoformat()}
        assert Message.from_dict(data) == message

    def test_from_dict_rejects_bad_types(self):
        """Test that documents with wrong types are rejected."""
        with pytest.raises(ValueError):
            Message.from_dict({"text": 3, "isUser": True, "timestamp": "2024-01-01T00:00:00"})
        with pytest.raises(ValueError):
            Message.from_dict({"text": "x", "isUser": "yes", "timestamp": "2024-01-01T00:00:00"})
        with pytest.raises(ValueError):
            Message.from_dict({"text": "x", "isUser": True})


class TestConversationContext:
    """Test the ConversationContext model."""

    def test_empty(self):
        """Test the empty context."""
        context = ConversationContext.empty()
        assert context.messages == ()
        assert context.summary == ""
        assert context.message_count == 0
        assert not context.has_summary

    def test_has_summary_ignores_whitespace(self):
        """Test that a blank summary does not count as a summary."""
        assert not ConversationContext(summary="   \n").has_summary
        assert ConversationContext(summary="User likes tea").has_summary

    def test_round_trip(self):
        """Test the stored document shape."""
        stamp = datetime(2024, 5, 1, 9, 0)
        context = ConversationContext(
            messages=(Message("hello there", True, stamp), Message("hi!", False, stamp)),
            summary="Greetings exchanged",
            last_updated=stamp,
        )

        data = context.to_dict()
        assert set(data) == {"messages", "summary", "lastUpdated"}
        assert data["messages"][1]["isUser"] is False
        assert ConversationContext.from_dict(data) == context

    def test_from_dict_rejects_malformed_documents(self):
        """Test schema validation of stored documents."""
        with pytest.raises(ValueError):
            ConversationContext.from_dict(["not", "a", "dict"])
        with pytest.raises(ValueError):
            ConversationContext.from_dict({"messages": "oops", "lastUpdated": "2024-01-01T00:00:00"})
        with pytest.raises(ValueError):
            ConversationContext.from_dict({"messages": [], "summary": 42, "lastUpdated": "2024-01-01T00:00:00"})
        with pytest.raises(ValueError):
            ConversationContext.from_dict({"messages": [], "summary": ""})


class TestMemoryConfig:
    """Test MemoryConfig validation and presets."""

    def test_defaults(self):
        """Test the standard defaults."""
        config = MemoryConfig()
        assert config.max_short_term_messages == 100
        assert config.max_medium_term_segments == 50
        assert config.max_long_term_segments == 25
        assert config.critical_importance_threshold == 0.9
        assert config.short_term_expiry == timedelta(hours=24)
        assert config.consolidation_interval == timedelta(hours=6)
        assert config.max_summarization_length == 4000
        assert config.cache_expiry == timedelta(hours=1)
        assert "remember" in config.priority_keywords

    def test_thresholds_must_descend(self):
        """Test that thresholds out of order are rejected."""
        with pytest.raises(ValueError):
            MemoryConfig(critical_importance_threshold=0.5, long_term_importance_threshold=0.7)
        with pytest.raises(ValueError):
            MemoryConfig(long_term_importance_threshold=0.4)

    def test_thresholds_in_unit_interval(self):
        """Test that thresholds outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            MemoryConfig(critical_importance_threshold=1.5)
        with pytest.raises(ValueError):
            MemoryConfig(medium_term_importance_threshold=-0.1)

    def test_summarization_length_floor(self):
        """Test the minimum summarization length."""
        with pytest.raises(ValueError):
            MemoryConfig(max_summarization_length=100)
        assert MemoryConfig(max_summarization_length=101).max_summarization_length == 101

    def test_replace_returns_new_instance(self):
        """Test that configs are immutable values."""
        config = MemoryConfig()
        changed = config.replace(max_long_term_segments=3)
        assert changed.max_long_term_segments == 3
        assert config.max_long_term_segments == 25
        with pytest.raises(Exception):
            config.max_long_term_segments = 1

    def test_priority_keywords_frozen(self):
        """Test that keyword lists are stored as tuples."""
        config = MemoryConfig(priority_keywords=["alpha", "beta"])
        assert config.priority_keywords == ("alpha", "beta")

    def test_presets(self):
        """Test named presets."""
        assert set(PRESETS) == {"minimal", "standard", "comprehensive", "token-efficient"}
        assert MemoryConfig.preset("standard") == MemoryConfig()
        minimal = MemoryConfig.preset("minimal")
        assert minimal.max_short_term_messages == 50
        assert not minimal.enable_auto_consolidation
        assert MemoryConfig.preset("Token_Efficient").max_summarization_length == 2000
        assert MemoryConfig.preset("comprehensive").consolidation_interval == timedelta(hours=3)

    def test_unknown_preset(self):
        """Test that unknown presets raise."""
        with pytest.raises(ValueError, match="Unknown memory preset"):
            MemoryConfig.preset("gigantic")

    def test_dict_round_trip(self):
        """Test the camelCase JSON form with durations in milliseconds."""
        config = MemoryConfig.preset("comprehensive")
        data = config.to_dict()
        assert data["maxShortTermMessages"] == 200
        assert data["consolidationInterval"] == 3 * 3600 * 1000
        assert isinstance(data["priorityKeywords"], list)
        assert MemoryConfig.from_dict(data) == config

    def test_from_dict_keeps_defaults(self):
        """Test that missing keys keep their default values."""
        config = MemoryConfig.from_dict({"maxLongTermSegments": 7})
        assert config.max_long_term_segments == 7
        assert config.max_short_term_messages == 100


class TestTriggerConfig:
    """Test TriggerConfig."""

    def test_defaults(self):
        config = TriggerConfig()
        assert config.initial_threshold == 10
        assert config.update_threshold == 25
        assert config.summarization_interval == timedelta(minutes=30)

    def test_validation(self):
        """Test rejected values."""
        with pytest.raises(ValueError):
            TriggerConfig(initial_threshold=0)
        with pytest.raises(ValueError):
            TriggerConfig(debounce_seconds=-1)


class TestMemorySegment:
    """Test MemorySegment behavior."""

    def test_tier_order_and_promotion(self):
        """Test tier ranks and promotion limits."""
        assert MemoryType.SHORT_TERM.rank < MemoryType.MEDIUM_TERM.rank < MemoryType.LONG_TERM.rank
        assert MemoryType.SHORT_TERM.promoted() is MemoryType.MEDIUM_TERM
        assert MemoryType.MEDIUM_TERM.promoted() is MemoryType.LONG_TERM
        assert MemoryType.LONG_TERM.promoted() is MemoryType.LONG_TERM
        assert MemoryType.CRITICAL.promoted() is MemoryType.CRITICAL

    def test_expiry(self):
        """Test per-tier expiry with critical segments never expiring."""
        config = MemoryConfig()
        now = datetime(2024, 6, 1, 12, 0)
        old = now - timedelta(hours=25)

        short = MemorySegment("x", MemoryType.SHORT_TERM, 0.2, created=old)
        critical = MemorySegment("y", MemoryType.CRITICAL, 0.95, created=now - timedelta(days=3650))
        medium = MemorySegment("z", MemoryType.MEDIUM_TERM, 0.5, created=old)

        assert short.is_expired(now, config)
        assert not medium.is_expired(now, config)
        assert not critical.is_expired(now, config)
        assert expiry_for(MemoryType.CRITICAL, config) is None

    def test_relevance_score(self):
        """Test time decay and access boost."""
        now = datetime(2024, 6, 1, 12, 0)
        fresh = MemorySegment("a", MemoryType.LONG_TERM, 0.8, last_accessed=now)
        week_old = MemorySegment("b", MemoryType.LONG_TERM, 0.8, last_accessed=now - timedelta(hours=168))
        accessed = MemorySegment("c", MemoryType.LONG_TERM, 0.8, last_accessed=now, access_count=3)
        saturated = MemorySegment("d", MemoryType.LONG_TERM, 0.8, last_accessed=now, access_count=50)

        assert fresh.relevance_score(now) == pytest.approx(0.8)
        assert week_old.relevance_score(now) == pytest.approx(0.4)
        assert accessed.relevance_score(now) == pytest.approx(0.8 * 1.3)
        assert saturated.relevance_score(now) == pytest.approx(1.6)

    def test_mark_accessed(self):
        now = datetime(2024, 6, 1, 12, 0)
        segment = MemorySegment("a", MemoryType.SHORT_TERM, 0.3)
        segment.mark_accessed(now)
        assert segment.access_count == 1
        assert segment.last_accessed == now

    def test_dict_round_trip(self):
        """Test the stored JSON form."""
        segment = MemorySegment(
            "I love hiking",
            MemoryType.MEDIUM_TERM,
            0.55,
            created=datetime(2024, 1, 1),
            last_accessed=datetime(2024, 1, 2),
            access_count=2,
            topics={"preferences", "emotions"},
            metadata={"isUser": True},
        )
        data = segment.to_dict()
        assert data["type"] == "medium_term"
        assert data["topics"] == ["emotions", "preferences"]
        assert data["accessCount"] == 2
        assert MemorySegment.from_dict(data) == segment

    def test_from_dict_missing_field(self):
        with pytest.raises(ValueError):
            MemorySegment.from_dict({"id": "mem_1", "content": "x"})

    def test_ids_are_unique(self):
        ids = {MemorySegment("x", MemoryType.SHORT_TERM, 0.1).id for _ in range(50)}
        assert len(ids) == 50
