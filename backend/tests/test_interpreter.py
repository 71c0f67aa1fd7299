from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from writeassist.interpreter import ResponseInterpreter
from writeassist.models import AIStatusKind, Suggestion, TokenUsage
from writeassist.providers.base import (
    AuthenticationError,
    ProviderError,
    ProviderNetworkError,
    ProviderTimeoutError,
    RateLimitError,
)
from writeassist.schema import is_suggestions_payload, map_items_to_suggestions


def gemini_response(text: Any, *, usage: Dict[str, int] | None = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "candidates": [
            {"content": {"parts": [{"text": text}]}, "finishReason": "STOP", "index": 0},
        ]
    }
    if usage is not None:
        body["usageMetadata"] = usage
    return body


def payload(items: List[Any]) -> str:
    return json.dumps({"suggestions": items})


@pytest.fixture
def interpreter() -> ResponseInterpreter:
    return ResponseInterpreter()


def test_well_formed_response_maps_to_suggestion(interpreter: ResponseInterpreter) -> None:
    outcome = interpreter.interpret_response(
        gemini_response(payload([{"text": "Fix this", "originalText": "fix this"}]))
    )

    assert outcome.suggestions == [Suggestion(id="gemini-1", text="Fix this", original_text="fix this")]
    assert outcome.status.kind is AIStatusKind.OK


def test_usage_metadata_becomes_delta(interpreter: ResponseInterpreter) -> None:
    usage = {"promptTokenCount": 12, "candidatesTokenCount": 4, "totalTokenCount": 16}
    outcome = interpreter.interpret_response(gemini_response(payload([]), usage=usage))

    assert outcome.usage_delta == TokenUsage(input_tokens=12, output_tokens=4, total_tokens=16, request_count=1)


def test_missing_usage_metadata_leaves_usage_alone(interpreter: ResponseInterpreter) -> None:
    assert interpreter.interpret_response(gemini_response(payload([]))).usage_delta is None


def test_partial_usage_metadata_counts_missing_fields_as_zero(interpreter: ResponseInterpreter) -> None:
    outcome = interpreter.interpret_response(gemini_response(payload([]), usage={"promptTokenCount": 5}))

    assert outcome.usage_delta == TokenUsage(input_tokens=5, request_count=1)


@pytest.mark.parametrize(
    "response",
    [
        None,
        [],
        {},
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        gemini_response(""),
        gemini_response(42),
    ],
)
def test_missing_candidate_text_yields_no_suggestions(interpreter: ResponseInterpreter, response: Any) -> None:
    outcome = interpreter.interpret_response(response)

    assert outcome.suggestions == []
    assert outcome.status.kind is AIStatusKind.OK


def test_malformed_json_degrades_to_empty_list(interpreter: ResponseInterpreter) -> None:
    # Contract violations are swallowed rather than reported; this pins that behaviour.
    usage = {"promptTokenCount": 3, "candidatesTokenCount": 1, "totalTokenCount": 4}
    outcome = interpreter.interpret_response(gemini_response("{not json", usage=usage))

    assert outcome.suggestions == []
    assert outcome.status.kind is AIStatusKind.OK
    assert outcome.usage_delta is not None and outcome.usage_delta.request_count == 1


def test_deeply_nested_candidate_text_degrades_to_empty_list(interpreter: ResponseInterpreter) -> None:
    usage = {"promptTokenCount": 3, "candidatesTokenCount": 1, "totalTokenCount": 4}
    outcome = interpreter.interpret_response(gemini_response("[" * 100_000, usage=usage))

    assert outcome.suggestions == []
    assert outcome.status.kind is AIStatusKind.OK
    assert outcome.usage_delta is not None and outcome.usage_delta.input_tokens == 3


@pytest.mark.parametrize("text", ['["a"]', '{"suggestions": "nope"}', '{"other": []}', "null"])
def test_wrong_shape_degrades_to_empty_list(interpreter: ResponseInterpreter, text: str) -> None:
    assert interpreter.interpret_response(gemini_response(text)).suggestions == []


def test_items_are_capped_and_invalid_entries_skipped() -> None:
    items = [
        {"text": "one"},
        {"originalText": "no text"},
        "bare string",
        {"text": 7},
        {"text": "two", "originalText": 3},
        {"text": "three"},
        {"text": "four"},
        {"text": "five"},
        {"text": "six"},
    ]

    suggestions = map_items_to_suggestions(items)

    assert [s.id for s in suggestions] == ["gemini-1", "gemini-2", "gemini-3", "gemini-4", "gemini-5"]
    assert [s.text for s in suggestions] == ["one", "two", "three", "four", "five"]
    assert suggestions[1].original_text is None


def test_suggestions_payload_requires_object_with_list() -> None:
    assert is_suggestions_payload({"suggestions": []})
    assert not is_suggestions_payload([{"suggestions": []}])
    assert not is_suggestions_payload({"suggestions": {}})


@pytest.mark.parametrize(
    ("error", "kind", "suggestion_id", "text"),
    [
        (AuthenticationError("bad", status_code=401), AIStatusKind.INVALID_API_KEY, "invalid-api-key",
         "Please check your API key in Settings."),
        (RateLimitError("slow down", status_code=429), AIStatusKind.RATE_LIMITED, "rate-limited",
         "Too many requests. Please wait a moment."),
        (ProviderNetworkError("offline"), AIStatusKind.ERROR, "api-error",
         "Network error. Please check your internet connection."),
        (ProviderTimeoutError("late"), AIStatusKind.ERROR, "api-error", "Request timed out. Please try again."),
        (ProviderError("boom", status_code=500), AIStatusKind.ERROR, "api-error",
         "AI suggestions temporarily unavailable. Please try again."),
        (RuntimeError("unexpected"), AIStatusKind.ERROR, "api-error",
         "AI suggestions temporarily unavailable. Please try again."),
    ],
)
def test_errors_map_to_status_and_single_sentinel(
    interpreter: ResponseInterpreter,
    error: BaseException,
    kind: AIStatusKind,
    suggestion_id: str,
    text: str,
) -> None:
    outcome = interpreter.interpret_error(error)

    assert outcome.status.kind is kind
    assert outcome.status.message == text
    assert outcome.suggestions == [Suggestion(id=suggestion_id, text=text)]
    assert outcome.usage_delta is None
