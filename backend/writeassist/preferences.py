from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTO_SUGGESTIONS_KEY = "autoSuggestions"
API_KEY_KEY = "geminiApiKey"


@runtime_checkable
class PreferenceStore(Protocol):
    def get(self, key: str, default: T) -> T:
        """Return the stored value or *default* when missing or unreadable."""

    def set(self, key: str, value: Any) -> None:
        """Store *value*; storage failures are ignored."""


class InMemoryPreferenceStore:
    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self._values: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: T) -> T:
        value = self._values.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class JsonFilePreferenceStore:
    """Keeps prefixed keys in a single JSON document on disk."""

    def __init__(self, path: Path, *, prefix: str = "aiWriter_") -> None:
        self.path = Path(path)
        self.prefix = prefix

    def get(self, key: str, default: T) -> T:
        document = self._read()
        value = document.get(self._key(key))
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        document = self._read()
        document[self._key(key)] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not persist preference %s: %s", key, exc)

    def _read(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"


__all__ = [
    "API_KEY_KEY",
    "AUTO_SUGGESTIONS_KEY",
    "InMemoryPreferenceStore",
    "JsonFilePreferenceStore",
    "PreferenceStore",
]
