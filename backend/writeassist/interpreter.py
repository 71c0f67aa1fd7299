from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from writeassist.models import AIStatus, AIStatusKind, Suggestion, SuggestionIds, TokenUsage
from writeassist.providers.base import (
    AuthenticationError,
    ProviderNetworkError,
    ProviderTimeoutError,
    RateLimitError,
)
from writeassist.schema import MAX_SUGGESTIONS, is_suggestions_payload, map_items_to_suggestions

logger = logging.getLogger(__name__)

INVALID_KEY_MESSAGE = "Please check your API key in Settings."
RATE_LIMITED_MESSAGE = "Too many requests. Please wait a moment."
NETWORK_MESSAGE = "Network error. Please check your internet connection."
TIMEOUT_MESSAGE = "Request timed out. Please try again."
UNAVAILABLE_MESSAGE = "AI suggestions temporarily unavailable. Please try again."


@dataclass(frozen=True)
class Interpretation:
    suggestions: List[Suggestion] = field(default_factory=list)
    status: AIStatus = field(default_factory=AIStatus)
    usage_delta: Optional[TokenUsage] = None


def _usage_delta(response: Any) -> Optional[TokenUsage]:
    if not isinstance(response, dict):
        return None
    metadata = response.get("usageMetadata")
    if not isinstance(metadata, dict):
        return None

    def count(name: str) -> int:
        value = metadata.get(name)
        return value if isinstance(value, int) and value > 0 else 0

    return TokenUsage(
        input_tokens=count("promptTokenCount"),
        output_tokens=count("candidatesTokenCount"),
        total_tokens=count("totalTokenCount"),
        request_count=1,
    )


def _first_candidate_text(response: Any) -> Optional[str]:
    if not isinstance(response, dict):
        return None
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    try:
        text = candidates[0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text else None


class ResponseInterpreter:
    """Stateless mapping from provider outcomes to :class:`Interpretation`."""

    def __init__(self, *, max_suggestions: int = MAX_SUGGESTIONS) -> None:
        self.max_suggestions = max_suggestions

    def interpret_response(self, response: Any) -> Interpretation:
        # Usage is read before anything else so malformed payloads still count.
        usage = _usage_delta(response)
        status = AIStatus(kind=AIStatusKind.OK)

        raw_text = _first_candidate_text(response)
        if raw_text is None:
            return Interpretation(status=status, usage_delta=usage)

        try:
            parsed = json.loads(raw_text.strip())
        except (ValueError, RecursionError):
            logger.info("Discarding candidate text that is not valid JSON")
            return Interpretation(status=status, usage_delta=usage)

        if not is_suggestions_payload(parsed):
            return Interpretation(status=status, usage_delta=usage)

        suggestions = map_items_to_suggestions(parsed["suggestions"], limit=self.max_suggestions)
        return Interpretation(suggestions=suggestions, status=status, usage_delta=usage)

    def interpret_error(self, error: BaseException) -> Interpretation:
        if isinstance(error, AuthenticationError):
            return self._failure(AIStatusKind.INVALID_API_KEY, SuggestionIds.INVALID_API_KEY, INVALID_KEY_MESSAGE)
        if isinstance(error, RateLimitError):
            return self._failure(AIStatusKind.RATE_LIMITED, SuggestionIds.RATE_LIMITED, RATE_LIMITED_MESSAGE)
        if isinstance(error, ProviderNetworkError):
            return self._failure(AIStatusKind.ERROR, SuggestionIds.API_ERROR, NETWORK_MESSAGE)
        if isinstance(error, ProviderTimeoutError):
            return self._failure(AIStatusKind.ERROR, SuggestionIds.API_ERROR, TIMEOUT_MESSAGE)
        return self._failure(AIStatusKind.ERROR, SuggestionIds.API_ERROR, UNAVAILABLE_MESSAGE)

    @staticmethod
    def _failure(kind: AIStatusKind, suggestion_id: str, message: str) -> Interpretation:
        return Interpretation(
            suggestions=[Suggestion(id=suggestion_id, text=message)],
            status=AIStatus(kind=kind, message=message),
        )


__all__ = ["Interpretation", "ResponseInterpreter"]
