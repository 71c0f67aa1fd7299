from __future__ import annotations

import asyncio

import pytest

from writeassist.config import Settings
from writeassist.preferences import InMemoryPreferenceStore, JsonFilePreferenceStore
from writeassist.providers.base import MockGeminiProvider
from writeassist.providers.gemini_provider import GeminiProvider
from writeassist.runtime import EditorRuntime, build_preferences, build_provider

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def mock_settings(**overrides) -> Settings:
    return Settings(default_provider="mock", debounce_ms=5, **overrides)


async def test_build_provider_follows_configuration() -> None:
    assert isinstance(build_provider(mock_settings()), MockGeminiProvider)
    gemini = build_provider(Settings(default_provider="gemini", model_id="gemini-x", timeout_ms=2500))
    assert isinstance(gemini, GeminiProvider)
    assert gemini.url.endswith("/models/gemini-x:generateContent")
    assert gemini.timeout == 2.5


async def test_build_preferences_uses_file_when_configured(tmp_path) -> None:
    assert isinstance(build_preferences(mock_settings()), InMemoryPreferenceStore)
    store = build_preferences(mock_settings(preferences_path=tmp_path / "prefs.json"))
    assert isinstance(store, JsonFilePreferenceStore)


async def test_sessions_share_one_client() -> None:
    runtime = EditorRuntime.from_settings(mock_settings())
    first_id, first = await runtime.open_session()
    second_id, second = await runtime.open_session()

    assert first_id != second_id
    assert first.client is second.client is runtime.client

    await runtime.shutdown()
    assert runtime.get(first_id) is None


async def test_closing_session_cancels_pending_work(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("INFO")
    runtime = EditorRuntime.from_settings(mock_settings())
    runtime.client.set_api_key("key")
    session_id, session = await runtime.open_session()

    session.edit_text("hello there")
    assert await runtime.close_session(session_id) is True
    await asyncio.sleep(0.05)

    assert session.controller.suggestions == ()
    assert runtime.client.token_usage.request_count == 0
    assert await runtime.close_session(session_id) is False
    assert any("Closed editor session" in record.message for record in caplog.records)


async def test_opening_beyond_capacity_closes_oldest_session() -> None:
    runtime = EditorRuntime.from_settings(mock_settings(max_sessions=2))
    first_id, first = await runtime.open_session()
    second_id, _ = await runtime.open_session()
    seen = []
    first.subscribe(seen.append)

    third_id, _ = await runtime.open_session()
    runtime.client.reset_token_usage()

    assert runtime.get(first_id) is None
    assert runtime.get(second_id) is not None
    assert runtime.get(third_id) is not None
    assert seen == []
    await runtime.shutdown()


def test_settings_defaults_match_editor_contract(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("DEBOUNCE_MS", "MAX_SUGGESTIONS", "MAX_SESSIONS"):
        monkeypatch.delenv(key, raising=False)
    settings = Settings(_env_file=None)
    assert settings.debounce_ms == 500
    assert settings.max_suggestions == 5
    assert settings.max_sessions == 100
