from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from writeassist.config import ClientConfig
from writeassist.interpreter import Interpretation, ResponseInterpreter
from writeassist.models import AIStatus, AIStatusKind, Suggestion, SuggestionIds, TokenUsage
from writeassist.prompts import grammar_prompt
from writeassist.providers.base import GenerativeProvider, ProviderError
from writeassist.providers.gemini_provider import GeminiProvider
from writeassist.schema import SUGGESTIONS_SCHEMA

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3

NO_API_KEY_STATUS_MESSAGE = "No API key configured. Please add your Gemini API key in Settings."
NO_API_KEY_SUGGESTION_TEXT = (
    "No API key configured. Please go to Settings and enter your Google Gemini API key "
    "to enable grammar checking."
)

ClientListener = Callable[["SuggestionClient"], None]


def default_generation_config() -> Dict[str, Any]:
    return {"thinkingConfig": {"thinkingLevel": "LOW"}}


class SuggestionClient:
    """Owns the API key, token usage and AI status for every editor it serves.

    ``get_suggestions`` never raises for provider failures: every outcome is a
    (possibly single sentinel) list of suggestions plus an updated status.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        provider: Optional[GenerativeProvider] = None,
        interpreter: Optional[ResponseInterpreter] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._provider = provider or GeminiProvider(
            api_base=self.config.api_base,
            model_id=self.config.model_id,
            timeout=self.config.timeout_seconds,
        )
        self._interpreter = interpreter or ResponseInterpreter()
        self._api_key = ""
        self._token_usage = TokenUsage()
        self._ai_status = AIStatus()
        self._listeners: List[ClientListener] = []

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    @property
    def token_usage(self) -> TokenUsage:
        return self._token_usage

    @property
    def ai_status(self) -> AIStatus:
        return self._ai_status

    def subscribe(self, listener: ClientListener) -> Callable[[], None]:
        """Call *listener* whenever status or usage change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key.strip() if api_key and api_key.strip() else ""

    def reset_token_usage(self) -> None:
        self._token_usage = TokenUsage()
        self._notify()

    def build_request(self, text: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": grammar_prompt(text)}]}],
            "generationConfig": {
                **default_generation_config(),
                "maxOutputTokens": self.config.max_output_tokens,
                "responseMimeType": "application/json",
                "responseSchema": SUGGESTIONS_SCHEMA,
            },
        }

    async def get_suggestions(self, text: str) -> List[Suggestion]:
        if not self._api_key:
            self._set_status(AIStatus(kind=AIStatusKind.NO_API_KEY, message=NO_API_KEY_STATUS_MESSAGE))
            return [Suggestion(id=SuggestionIds.NO_API_KEY, text=NO_API_KEY_SUGGESTION_TEXT)]
        if len(text.strip()) < MIN_QUERY_LENGTH:
            return []

        request = self.build_request(text)
        logger.info("Requesting suggestions from %s (%d chars)", self.config.model_id, len(text))
        try:
            response = await self._provider.generate_content(request, api_key=self._api_key)
        except ProviderError as exc:
            logger.info("Suggestion request failed: %s", exc)
            return self._apply(self._interpreter.interpret_error(exc))
        except Exception as exc:
            logger.exception("Unexpected failure while requesting suggestions")
            return self._apply(self._interpreter.interpret_error(exc))
        try:
            outcome = self._interpreter.interpret_response(response)
        except Exception:
            logger.exception("Could not interpret suggestion response")
            outcome = Interpretation()
        return self._apply(outcome)

    def _apply(self, outcome: Interpretation) -> List[Suggestion]:
        if outcome.usage_delta is not None:
            self._token_usage = self._token_usage.add(outcome.usage_delta)
        self._ai_status = outcome.status
        self._notify()
        return list(outcome.suggestions)

    def _set_status(self, status: AIStatus) -> None:
        self._ai_status = status
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


__all__ = ["SuggestionClient", "default_generation_config"]
