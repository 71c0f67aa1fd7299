from __future__ import annotations

from typing import Any, Dict, List

from writeassist.models import Suggestion

MAX_SUGGESTIONS = 5

# Strict JSON schema the model must follow when returning suggestions.
SUGGESTIONS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "suggestions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "text": {"type": "string"},
                    "originalText": {"type": "string"},
                },
                "required": ["text"],
            },
        },
    },
    "required": ["suggestions"],
}


def is_suggestions_payload(data: Any) -> bool:
    """Return True for an object carrying a ``suggestions`` list."""
    return isinstance(data, dict) and isinstance(data.get("suggestions"), list)


def is_parsed_suggestion(item: Any) -> bool:
    return isinstance(item, dict) and isinstance(item.get("text"), str)


def map_items_to_suggestions(items: List[Any], *, limit: int = MAX_SUGGESTIONS) -> List[Suggestion]:
    """Turn raw schema items into suggestions, numbering them ``gemini-1..N``.

    Items without a string ``text`` are skipped and do not consume an id.
    ``originalText`` is only kept when it is a string.
    """
    picked: List[Suggestion] = []
    for item in items:
        if len(picked) >= limit:
            break
        if not is_parsed_suggestion(item):
            continue
        original = item.get("originalText")
        picked.append(
            Suggestion(
                id=f"gemini-{len(picked) + 1}",
                text=item["text"],
                original_text=original if isinstance(original, str) else None,
            )
        )
    return picked


__all__ = [
    "MAX_SUGGESTIONS",
    "SUGGESTIONS_SCHEMA",
    "is_parsed_suggestion",
    "is_suggestions_payload",
    "map_items_to_suggestions",
]
