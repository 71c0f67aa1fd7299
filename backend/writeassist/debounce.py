from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from writeassist.models import (
    SYSTEM_SUGGESTION_IDS,
    ControllerState,
    Suggestion,
    SuggestionIds,
)
from writeassist.schema import MAX_SUGGESTIONS

logger = logging.getLogger(__name__)

DEBOUNCE_TIME_MS = 500
REQUEST_FAILED_MESSAGE = "Failed to get suggestions."

Listener = Callable[[], None]


class SuggestionSource(Protocol):
    async def get_suggestions(self, text: str) -> Sequence[Suggestion]:
        ...


def filter_system_suggestions(suggestions: Sequence[Suggestion]) -> Tuple[Suggestion, ...]:
    """Drop sentinels that the notice banner already reports."""
    return tuple(s for s in suggestions if s.id not in SYSTEM_SUGGESTION_IDS)


class DebounceController:
    """Quiet-timer and cancellation between keystrokes and suggestion requests.

    Every change cancels the pending run; a run whose generation is stale never
    publishes, even when cancellation arrives late.
    """

    def __init__(
        self,
        client: SuggestionSource,
        *,
        auto_suggestions: bool = True,
        debounce_ms: int = DEBOUNCE_TIME_MS,
        max_display: int = MAX_SUGGESTIONS,
    ) -> None:
        self._client = client
        self._debounce_seconds = debounce_ms / 1000
        self._max_display = max_display

        self._text = ""
        self._auto_suggestions = auto_suggestions
        self._suggestions: Tuple[Suggestion, ...] = ()
        self._is_processing = False
        self._state = ControllerState.IDLE
        self._last_query = ""

        self._generation = 0
        self._task: Optional[asyncio.Task[Any]] = None
        self._listeners: List[Listener] = []

    @property
    def text(self) -> str:
        return self._text

    @property
    def auto_suggestions(self) -> bool:
        return self._auto_suggestions

    @property
    def suggestions(self) -> Tuple[Suggestion, ...]:
        return self._suggestions[: self._max_display]

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def last_query(self) -> str:
        return self._last_query

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def edit_text(self, text: str) -> None:
        if text == self._text:
            return
        self._text = text
        self._reevaluate()

    def set_auto_suggestions(self, enabled: bool) -> None:
        if enabled == self._auto_suggestions:
            return
        self._auto_suggestions = enabled
        self._reevaluate()

    def toggle_auto_suggestions(self) -> bool:
        self.set_auto_suggestions(not self._auto_suggestions)
        return self._auto_suggestions

    def apply_suggestion(self, suggestion_id: str) -> bool:
        """Write a suggestion into the text and remove it from the list.

        With ``original_text`` only its first occurrence is replaced, otherwise
        the suggestion replaces the whole text.
        """
        suggestion = self._find(suggestion_id)
        if suggestion is None:
            return False
        if suggestion.original_text:
            new_text = self._text.replace(suggestion.original_text, suggestion.text, 1)
        else:
            new_text = suggestion.text
        self.edit_text(new_text)
        self.dismiss_suggestion(suggestion_id)
        return True

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        remaining = tuple(s for s in self._suggestions if s.id != suggestion_id)
        if len(remaining) == len(self._suggestions):
            return False
        self._suggestions = remaining
        self._notify()
        return True

    def cancel(self) -> None:
        """Stop the quiet-timer and discard any in-flight request. Safe to repeat."""
        was_busy = self._task is not None or self._is_processing
        self._cancel_pending()
        self._state = ControllerState.IDLE
        if was_busy:
            self._notify()

    async def wait_until_settled(self) -> None:
        """Wait until no timer or request is outstanding."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def aclose(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        self._listeners.clear()

    def _reevaluate(self) -> None:
        self._cancel_pending()
        query = self._text.strip()

        if not query or not self._auto_suggestions:
            self._suggestions = ()
            self._state = ControllerState.IDLE
            self._notify()
            return

        if query == self._last_query:
            self._state = ControllerState.IDLE
            self._notify()
            return

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(query, self._generation))
        self._state = ControllerState.PENDING
        logger.debug("Quiet-timer started (generation %d)", self._generation)
        self._notify()

    def _cancel_pending(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            logger.debug("Cancelling superseded suggestion work")
            task.cancel()
        self._is_processing = False

    async def _run(self, query: str, generation: int) -> None:
        await asyncio.sleep(self._debounce_seconds)
        if generation != self._generation:
            return

        self._state = ControllerState.IN_FLIGHT
        self._is_processing = True
        self._notify()

        try:
            suggestions = await self._client.get_suggestions(query)
        except Exception:
            logger.exception("Failed to fetch suggestions")
            suggestions = [Suggestion(id=SuggestionIds.API_ERROR, text=REQUEST_FAILED_MESSAGE)]

        if generation != self._generation:
            logger.debug("Discarding stale suggestions (generation %d)", generation)
            return

        self._suggestions = filter_system_suggestions(suggestions)
        self._last_query = query
        self._is_processing = False
        self._state = ControllerState.IDLE
        self._task = None
        self._notify()

    def _find(self, suggestion_id: str) -> Optional[Suggestion]:
        for suggestion in self._suggestions:
            if suggestion.id == suggestion_id:
                return suggestion
        return None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


__all__ = ["DebounceController", "SuggestionSource", "filter_system_suggestions"]
