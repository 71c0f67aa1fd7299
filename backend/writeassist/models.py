from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Immutable model serialised with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class SuggestionIds:
    NO_API_KEY = "no-api-key"
    INVALID_API_KEY = "invalid-api-key"
    API_ERROR = "api-error"
    RATE_LIMITED = "rate-limited"


# Reported through the notice banner rather than the suggestion list.
SYSTEM_SUGGESTION_IDS = frozenset({SuggestionIds.NO_API_KEY, SuggestionIds.INVALID_API_KEY})


class Suggestion(_WireModel):
    id: str
    text: str
    original_text: Optional[str] = None

    @model_serializer(mode="wrap")
    def _omit_missing_original(self, handler: SerializerFunctionWrapHandler):
        data = handler(self)
        if self.original_text is None:
            data.pop("originalText", None)
            data.pop("original_text", None)
        return data


class TokenUsage(_WireModel):
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    request_count: int = Field(default=0, ge=0)

    def add(self, delta: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + delta.input_tokens,
            output_tokens=self.output_tokens + delta.output_tokens,
            total_tokens=self.total_tokens + delta.total_tokens,
            request_count=self.request_count + delta.request_count,
        )


class AIStatusKind(str, Enum):
    OK = "ok"
    NO_API_KEY = "noApiKey"
    INVALID_API_KEY = "invalidApiKey"
    RATE_LIMITED = "rateLimited"
    ERROR = "error"


class AIStatus(_WireModel):
    """Last observed outcome of a request or key change."""

    kind: AIStatusKind = AIStatusKind.OK
    message: Optional[str] = None

    @property
    def needs_api_key_attention(self) -> bool:
        return self.kind in {AIStatusKind.NO_API_KEY, AIStatusKind.INVALID_API_KEY}


class ControllerState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    IN_FLIGHT = "inFlight"


class Notice(_WireModel):
    visible: bool = False
    message: str = ""


class SessionSnapshot(_WireModel):
    text: str
    suggestions: Tuple[Suggestion, ...]
    is_processing: bool
    state: ControllerState
    token_usage: TokenUsage
    ai_status: AIStatus
    notice: Notice
    auto_suggestions: bool
    word_count: int
    character_count: int


__all__ = [
    "AIStatus",
    "AIStatusKind",
    "ControllerState",
    "Notice",
    "SYSTEM_SUGGESTION_IDS",
    "SessionSnapshot",
    "Suggestion",
    "SuggestionIds",
    "TokenUsage",
]
