"""Strict parsing of summarization responses."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

STRUCTURED_LIST_FIELDS = (
    "key_topics",
    "important_facts",
    "user_preferences",
    "goals",
    "recurring_themes",
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class ParsedSummary:
    """A summary accepted from the completion provider.

    ``text`` is what gets stored as the conversation summary. When the model
    answered with a JSON envelope, the structured fields are exposed as well.
    """

    text: str
    prose: str
    structured: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def is_structured(self) -> bool:
        return bool(self.structured)


@dataclass(frozen=True)
class MalformedResponse:
    """A response that cannot be used as a summary."""

    reason: str
    raw: Optional[Any] = None


SummaryParseResult = Union[ParsedSummary, MalformedResponse]


def _as_string_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return [v for v in value if v.strip()]
    return None


def parse_summary_response(content: Any) -> SummaryParseResult:
    """Parse the assistant content of a summarization call.

    Plain text is accepted as a prose summary. Content that looks like a JSON
    object must decode and carry a non-empty ``summary`` field; anything else
    is malformed.
    """
    if not isinstance(content, str):
        return MalformedResponse(f"content is {type(content).__name__}, not a string", content)

    text = content.strip()
    if not text:
        return MalformedResponse("content is empty", content)

    candidate = text
    fenced = _FENCE_RE.match(text)
    if fenced:
        candidate = fenced.group(1).strip()

    if not candidate.startswith("{"):
        return ParsedSummary(text=text, prose=text)

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        return MalformedResponse(f"invalid JSON summary: {e}", content)

    if not isinstance(data, dict):
        return MalformedResponse("JSON summary is not an object", content)

    prose = data.get("summary")
    if not isinstance(prose, str) or not prose.strip():
        return MalformedResponse("JSON summary has no 'summary' field", content)

    structured: Dict[str, List[str]] = {}
    for name in STRUCTURED_LIST_FIELDS:
        values = _as_string_list(data.get(name))
        if values is None:
            return MalformedResponse(f"'{name}' must be a list of strings", content)
        if values:
            structured[name] = values

    return ParsedSummary(text=candidate, prose=prose.strip(), structured=structured)
