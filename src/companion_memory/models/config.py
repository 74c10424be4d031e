"""Configuration value objects for memory management and summarization."""

from dataclasses import asdict, dataclass, field, replace
from datetime import timedelta
from typing import Any, Dict, Tuple

DEFAULT_PRIORITY_KEYWORDS: Tuple[str, ...] = (
    "important",
    "remember",
    "never forget",
    "critical",
    "urgent",
    "priority",
    "essential",
    "key",
    "main",
    "preferences",
    "goals",
    "objectives",
    "plans",
)

_DURATION_FIELDS = (
    "short_term_expiry",
    "medium_term_expiry",
    "long_term_expiry",
    "consolidation_interval",
    "cache_expiry",
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class MemoryConfig:
    """Thresholds and switches for tiered memory management.

    Instances are immutable. Use ``replace`` (or one of the named presets) to
    derive a new configuration.
    """

    # Tier capacities
    max_short_term_messages: int = 100
    max_medium_term_segments: int = 50
    max_long_term_segments: int = 25

    # Importance thresholds, strictly descending
    critical_importance_threshold: float = 0.9
    long_term_importance_threshold: float = 0.7
    medium_term_importance_threshold: float = 0.4

    # Timing
    short_term_expiry: timedelta = timedelta(hours=24)
    medium_term_expiry: timedelta = timedelta(days=7)
    long_term_expiry: timedelta = timedelta(days=30)
    consolidation_interval: timedelta = timedelta(hours=6)

    # Performance
    max_summarization_length: int = 4000
    cache_cleanup_threshold: int = 10
    cache_expiry: timedelta = timedelta(hours=1)
    enable_auto_consolidation: bool = True
    enable_memory_compression: bool = True

    # Quality
    min_message_importance: float = 0.1
    min_message_length: int = 3
    promotion_access_count: int = 5
    priority_keywords: Tuple[str, ...] = field(default=DEFAULT_PRIORITY_KEYWORDS)

    def __post_init__(self) -> None:
        thresholds = (
            self.critical_importance_threshold,
            self.long_term_importance_threshold,
            self.medium_term_importance_threshold,
        )
        if any(t < 0.0 or t > 1.0 for t in thresholds):
            raise ValueError("Importance thresholds must be within [0, 1]")
        if not (thresholds[0] > thresholds[1] > thresholds[2]):
            raise ValueError(
                "Importance thresholds must be strictly descending: "
                "critical > long-term > medium-term"
            )
        if self.max_summarization_length <= 100:
            raise ValueError("max_summarization_length must be greater than 100")
        # Lists passed in by callers are frozen so the value stays hashable
        if not isinstance(self.priority_keywords, tuple):
            object.__setattr__(self, "priority_keywords", tuple(self.priority_keywords))

    def replace(self, **changes: Any) -> "MemoryConfig":
        """Return a copy with the given fields changed."""
        return replace(self, **changes)

    @classmethod
    def preset(cls, name: str) -> "MemoryConfig":
        """Look up a named preset.

        Args:
            name: One of ``minimal``, ``standard``, ``comprehensive`` or
                ``token-efficient`` (underscores are accepted too).

        Raises:
            ValueError: If the preset name is unknown.
        """
        key = name.strip().lower().replace("_", "-")
        if key not in PRESETS:
            raise ValueError(f"Unknown memory preset '{name}'. Available: {sorted(PRESETS)}")
        return PRESETS[key]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key, value in asdict(self).items():
            if key in _DURATION_FIELDS:
                value = int(value.total_seconds() * 1000)
            elif key == "priority_keywords":
                value = list(value)
            data[_camel(key)] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryConfig":
        """Build a config from its JSON form; missing keys keep their defaults."""
        changes: Dict[str, Any] = {}
        for name in cls.__dataclass_fields__:
            camel = _camel(name)
            if camel not in data or data[camel] is None:
                continue
            value = data[camel]
            if name in _DURATION_FIELDS:
                value = timedelta(milliseconds=value)
            elif name == "priority_keywords":
                value = tuple(value)
            changes[name] = value
        return cls(**changes)


PRESETS: Dict[str, MemoryConfig] = {
    "minimal": MemoryConfig(
        max_short_term_messages=50,
        max_medium_term_segments=20,
        max_long_term_segments=10,
        critical_importance_threshold=0.95,
        long_term_importance_threshold=0.8,
        medium_term_importance_threshold=0.5,
        enable_auto_consolidation=False,
        enable_memory_compression=False,
    ),
    "standard": MemoryConfig(),
    "comprehensive": MemoryConfig(
        max_short_term_messages=200,
        max_medium_term_segments=100,
        max_long_term_segments=50,
        critical_importance_threshold=0.85,
        long_term_importance_threshold=0.6,
        medium_term_importance_threshold=0.3,
        consolidation_interval=timedelta(hours=3),
    ),
    "token-efficient": MemoryConfig(
        max_short_term_messages=40,
        max_medium_term_segments=20,
        max_long_term_segments=15,
        max_summarization_length=2000,
        min_message_importance=0.2,
        min_message_length=10,
        consolidation_interval=timedelta(hours=2),
    ),
}


@dataclass(frozen=True)
class TriggerConfig:
    """Thresholds that decide when conversation summarization runs."""

    initial_threshold: int = 10
    update_threshold: int = 25
    summarization_interval: timedelta = timedelta(minutes=30)
    min_messages_for_time_trigger: int = 10
    debounce_seconds: float = 5.0
    max_messages_for_context: int = 50
    relevant_memory_limit: int = 5

    def __post_init__(self) -> None:
        if self.initial_threshold < 1 or self.update_threshold < 1:
            raise ValueError("Summarization thresholds must be positive")
        if self.debounce_seconds < 0:
            raise ValueError("debounce_seconds cannot be negative")

    def replace(self, **changes: Any) -> "TriggerConfig":
        return replace(self, **changes)
