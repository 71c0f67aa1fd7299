from .base import (
    AuthenticationError,
    GenerativeProvider,
    MockGeminiProvider,
    ProviderConfigError,
    ProviderError,
    ProviderNetworkError,
    ProviderTimeoutError,
    RateLimitError,
)
from .gemini_provider import GeminiProvider

__all__ = [
    "AuthenticationError",
    "GeminiProvider",
    "GenerativeProvider",
    "MockGeminiProvider",
    "ProviderConfigError",
    "ProviderError",
    "ProviderNetworkError",
    "ProviderTimeoutError",
    "RateLimitError",
]
