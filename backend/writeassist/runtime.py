from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Dict, List, Optional

from writeassist.client import SuggestionClient
from writeassist.config import Settings
from writeassist.preferences import (
    API_KEY_KEY,
    InMemoryPreferenceStore,
    JsonFilePreferenceStore,
    PreferenceStore,
)
from writeassist.providers.base import GenerativeProvider, MockGeminiProvider
from writeassist.providers.gemini_provider import GeminiProvider
from writeassist.session import EditorSession

logger = logging.getLogger(__name__)


def build_provider(settings: Settings) -> GenerativeProvider:
    """Pick the provider implementation based on configuration."""
    if settings.default_provider.lower() == "mock":
        return MockGeminiProvider()
    return GeminiProvider(
        api_base=settings.api_base,
        model_id=settings.model_id,
        timeout=settings.timeout_ms / 1000,
    )


def build_preferences(settings: Settings) -> PreferenceStore:
    if settings.preferences_path is not None:
        return JsonFilePreferenceStore(settings.preferences_path)
    return InMemoryPreferenceStore()


class EditorRuntime:
    """Process-wide owner of the suggestion client and every open editor session."""

    def __init__(
        self,
        client: SuggestionClient,
        preferences: PreferenceStore,
        *,
        debounce_ms: int = 500,
        max_suggestions: int = 5,
        max_sessions: int = 100,
    ) -> None:
        self.client = client
        self.preferences = preferences
        self.debounce_ms = debounce_ms
        self.max_suggestions = max_suggestions
        self.max_sessions = max_sessions
        self._sessions: Dict[str, EditorSession] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "EditorRuntime":
        client = SuggestionClient(settings.client_config(), provider=build_provider(settings))
        preferences = build_preferences(settings)
        if not preferences.get(API_KEY_KEY, "") and settings.gemini_api_key:
            client.set_api_key(settings.gemini_api_key)
        return cls(
            client,
            preferences,
            debounce_ms=settings.debounce_ms,
            max_suggestions=settings.max_suggestions,
            max_sessions=settings.max_sessions,
        )

    async def open_session(self) -> tuple[str, EditorSession]:
        session = EditorSession(
            self.client,
            self.preferences,
            debounce_ms=self.debounce_ms,
            max_suggestions=self.max_suggestions,
        )
        session_id = str(uuid.uuid4())
        evicted: List[tuple[str, EditorSession]] = []
        async with self._lock:
            while self._sessions and len(self._sessions) >= self.max_sessions:
                oldest_id = next(iter(self._sessions))
                evicted.append((oldest_id, self._sessions.pop(oldest_id)))
            self._sessions[session_id] = session
        for oldest_id, oldest in evicted:
            await oldest.close()
            logger.info("Evicted editor session %s to stay within %d open sessions", oldest_id, self.max_sessions)
        logger.info("Opened editor session %s", session_id)
        return session_id, session

    def get(self, session_id: str) -> Optional[EditorSession]:
        return self._sessions.get(session_id)

    async def close_session(self, session_id: str) -> bool:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        logger.info("Closed editor session %s", session_id)
        return True

    async def shutdown(self) -> None:
        async with self._lock:
            sessions: List[EditorSession] = list(self._sessions.values())
            self._sessions.clear()
        if sessions:
            logger.info("Closing %d editor session(s)", len(sessions))
        await asyncio.gather(*(session.close() for session in sessions), return_exceptions=True)


__all__ = ["EditorRuntime", "build_preferences", "build_provider"]
