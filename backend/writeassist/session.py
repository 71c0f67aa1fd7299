from __future__ import annotations

import logging
from typing import Callable, List, Optional

from writeassist.client import SuggestionClient
from writeassist.debounce import DEBOUNCE_TIME_MS, DebounceController
from writeassist.models import Notice, SessionSnapshot
from writeassist.preferences import API_KEY_KEY, AUTO_SUGGESTIONS_KEY, PreferenceStore
from writeassist.schema import MAX_SUGGESTIONS

logger = logging.getLogger(__name__)

DEFAULT_NOTICE_MESSAGE = "Your API key seems invalid. Update it in Settings."

SnapshotListener = Callable[[SessionSnapshot], None]


class EditorSession:
    """One editor: debounce controller, preferences and the API-key notice banner."""

    def __init__(
        self,
        client: SuggestionClient,
        preferences: PreferenceStore,
        *,
        debounce_ms: int = DEBOUNCE_TIME_MS,
        max_suggestions: int = MAX_SUGGESTIONS,
    ) -> None:
        self.client = client
        self.preferences = preferences

        stored_key = preferences.get(API_KEY_KEY, "")
        if stored_key:
            client.set_api_key(stored_key)

        self.controller = DebounceController(
            client,
            auto_suggestions=bool(preferences.get(AUTO_SUGGESTIONS_KEY, True)),
            debounce_ms=debounce_ms,
            max_display=max_suggestions,
        )
        self._notice = Notice()
        self._last_status = client.ai_status
        self._listeners: List[SnapshotListener] = []
        self._unsubscribers = [
            self.controller.subscribe(self._emit),
            client.subscribe(self._on_client_change),
        ]

    @property
    def notice(self) -> Notice:
        return self._notice

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        text = self.controller.text
        stripped = text.strip()
        return SessionSnapshot(
            text=text,
            suggestions=self.controller.suggestions,
            is_processing=self.controller.is_processing,
            state=self.controller.state,
            token_usage=self.client.token_usage,
            ai_status=self.client.ai_status,
            notice=self._notice,
            auto_suggestions=self.controller.auto_suggestions,
            word_count=len(stripped.split()) if stripped else 0,
            character_count=len(text),
        )

    def edit_text(self, text: str) -> None:
        self.controller.edit_text(text)

    def toggle_auto_suggestions(self) -> bool:
        enabled = self.controller.toggle_auto_suggestions()
        self.preferences.set(AUTO_SUGGESTIONS_KEY, enabled)
        return enabled

    def apply_suggestion(self, suggestion_id: str) -> bool:
        return self.controller.apply_suggestion(suggestion_id)

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        return self.controller.dismiss_suggestion(suggestion_id)

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Persist and install a new key; does not trigger a request."""
        cleaned = api_key.strip() if api_key and api_key.strip() else None
        self.preferences.set(API_KEY_KEY, cleaned)
        self.client.set_api_key(cleaned)
        logger.info("API key %s", "updated" if self.client.has_api_key else "cleared")
        self._set_notice(Notice())

    def reset_usage(self) -> None:
        self.client.reset_token_usage()

    def dismiss_api_key_notice(self) -> None:
        self._set_notice(Notice(visible=False, message=self._notice.message))

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        await self.controller.aclose()
        self._listeners.clear()

    def _on_client_change(self, client: SuggestionClient) -> None:
        status = client.ai_status
        # Every request outcome publishes a new status object; usage-only
        # changes keep the old one and leave the banner alone.
        if status is not self._last_status:
            self._last_status = status
            if status.needs_api_key_attention:
                self._notice = Notice(visible=True, message=status.message or DEFAULT_NOTICE_MESSAGE)
            else:
                self._notice = Notice()
        self._emit()

    def _set_notice(self, notice: Notice) -> None:
        self._notice = notice
        self._emit()

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)


__all__ = ["EditorSession"]
