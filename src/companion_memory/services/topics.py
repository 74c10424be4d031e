"""Keyword taxonomy used to tag messages and memories with topics."""

import re
from typing import Dict, Iterable, List, Set, Tuple

TOPIC_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "work": ("work", "job", "career", "office", "project", "meeting", "colleague", "boss", "client"),
    "family": (
        "family",
        "parent",
        "child",
        "sibling",
        "relative",
        "home",
        "mother",
        "father",
        "brother",
        "sister",
    ),
    "hobbies": ("hobby", "game", "sport", "music", "movie", "book", "reading", "gaming"),
    "goals": (
        "goal",
        "objective",
        "plan",
        "target",
        "aim",
        "want to",
        "need to",
        "dream",
        "aspiration",
    ),
    "preferences": ("like", "love", "prefer", "favorite", "enjoy", "hate", "dislike"),
    "schedule": ("schedule", "time", "when", "meeting", "appointment", "calendar", "deadline"),
    "location": ("live", "location", "city", "country", "address", "place", "travel", "move"),
    "technical": (
        "code",
        "programming",
        "computer",
        "software",
        "app",
        "website",
        "technology",
        "ai",
    ),
    "emotions": (
        "feel",
        "feeling",
        "happy",
        "sad",
        "angry",
        "excited",
        "worried",
        "frustrated",
        "love",
    ),
    "health": ("health", "doctor", "medical", "sick", "pain", "exercise", "diet", "fitness"),
}


def _topic_pattern(words: Tuple[str, ...]) -> "re.Pattern[str]":
    # Short keywords ("ai", "app") must be whole words, longer ones may be prefixes
    short = [re.escape(w) for w in words if len(w) <= 3]
    long = [re.escape(w) for w in words if len(w) > 3]
    parts = []
    if short:
        parts.append(r"\b(?:" + "|".join(short) + r")s?\b")
    if long:
        parts.append(r"\b(?:" + "|".join(long) + r")")
    return re.compile("|".join(parts))


_PATTERNS: Dict[str, "re.Pattern[str]"] = {
    topic: _topic_pattern(words) for topic, words in TOPIC_KEYWORDS.items()
}

_WORD_RE = re.compile(r"[a-z0-9']+")

STOPWORDS = frozenset(
    "the and for are but not you your with this that have has was were what when where "
    "who how why can could would should will just about from into them they their there "
    "then than our out too very its it's i'm".split()
)


def extract_topics(text: str) -> Set[str]:
    """Return the taxonomy topics whose keywords start a word in ``text``."""
    lowered = text.lower()
    return {topic for topic, pattern in _PATTERNS.items() if pattern.search(lowered)}


def extract_key_topics(texts: Iterable[str], limit: int = 10) -> List[str]:
    """Union of topics over several texts, in first-seen order."""
    seen: List[str] = []
    for text in texts:
        for topic in sorted(extract_topics(text)):
            if topic not in seen:
                seen.append(topic)
    return seen[:limit]


def keywords(text: str) -> Set[str]:
    """Lowercase content words of at least three characters."""
    return {w for w in _WORD_RE.findall(text.lower()) if len(w) >= 3 and w not in STOPWORDS}
