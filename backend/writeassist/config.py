from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_ID = "gemini-3-flash-preview"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class ClientConfig(BaseModel):
    """Options the suggestion client is constructed with."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_id: str = Field(default=DEFAULT_MODEL_ID, min_length=1)
    api_base: str = Field(default=DEFAULT_API_BASE, min_length=1)
    timeout_ms: int = Field(default=50_000, gt=0)
    max_output_tokens: int = Field(default=5_000, gt=0)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        protected_namespaces=(),
    )

    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    model_id: str = Field(default=DEFAULT_MODEL_ID)
    api_base: str = Field(default=DEFAULT_API_BASE)
    timeout_ms: int = Field(default=50_000)
    max_output_tokens: int = Field(default=5_000)
    debounce_ms: int = Field(default=500)
    max_suggestions: int = Field(default=5)
    max_sessions: int = Field(default=100)
    default_provider: str = Field(default="gemini")
    preferences_path: Path | None = Field(default=None)
    log_level: str = Field(default="INFO")

    def validate(self) -> None:
        """Ensure our runtime configuration is coherent before use."""
        if self.default_provider.lower() not in {"gemini", "mock"}:
            raise ValueError("default_provider must be one of: gemini, mock")
        for name in ("timeout_ms", "max_output_tokens", "debounce_ms", "max_suggestions", "max_sessions"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    def client_config(self) -> ClientConfig:
        return ClientConfig(
            model_id=self.model_id,
            api_base=self.api_base,
            timeout_ms=self.timeout_ms,
            max_output_tokens=self.max_output_tokens,
        )


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process; FastAPI reuses this cached instance."""
    settings = Settings()
    settings.validate()
    return settings


__all__ = ["ClientConfig", "Settings", "get_settings"]
