from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional, Protocol, runtime_checkable


class ProviderError(Exception):
    """Base exception for provider-related failures."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderConfigError(ProviderError):
    """Raised when a provider is configured incorrectly."""


class ProviderTimeoutError(ProviderError):
    """Raised when the upstream provider request exceeds its deadline."""


class ProviderNetworkError(ProviderError):
    """Raised when the provider cannot be reached at all (HTTP status 0)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=0)


class RateLimitError(ProviderError):
    """Raised when the upstream provider enforces a rate limit."""


class AuthenticationError(ProviderError):
    """Raised when the API key is rejected or the request is refused as invalid."""


@runtime_checkable
class GenerativeProvider(Protocol):
    """Protocol describing the single call the suggestion client needs."""

    async def generate_content(self, payload: Dict[str, Any], *, api_key: str) -> Any:
        """Send *payload* and return the decoded response body."""


def _prompt_text(payload: Dict[str, Any]) -> str:
    try:
        return payload["contents"][0]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""


def _analyzed_text(prompt: str) -> str:
    # The prompt wraps the user's text between two "---" lines.
    sections = prompt.split("\n---\n")
    return sections[1] if len(sections) >= 3 else prompt


class MockGeminiProvider:
    """Fallback provider that fabricates Gemini responses without external calls."""

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency

    async def generate_content(self, payload: Dict[str, Any], *, api_key: str) -> Dict[str, Any]:
        if self.latency:
            await asyncio.sleep(self.latency)
        text = _analyzed_text(_prompt_text(payload))
        suggestions = []
        # Deterministic so tests and local frontends can rely on it.
        first_word = text.split()[0] if text.split() else ""
        if first_word[:1].islower():
            suggestions.append({"text": first_word.capitalize(), "originalText": first_word})

        input_tokens = len(text.split())
        output_tokens = len(suggestions)
        return {
            "candidates": [
                {
                    "content": {"parts": [{"text": json.dumps({"suggestions": suggestions})}]},
                    "finishReason": "STOP",
                    "index": 0,
                }
            ],
            "usageMetadata": {
                "promptTokenCount": input_tokens,
                "candidatesTokenCount": output_tokens,
                "totalTokenCount": input_tokens + output_tokens,
            },
        }


__all__ = [
    "AuthenticationError",
    "GenerativeProvider",
    "MockGeminiProvider",
    "ProviderConfigError",
    "ProviderError",
    "ProviderNetworkError",
    "ProviderTimeoutError",
    "RateLimitError",
]
