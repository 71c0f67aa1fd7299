from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from writeassist.providers.base import (
    AuthenticationError,
    ProviderConfigError,
    ProviderError,
    ProviderNetworkError,
    ProviderTimeoutError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


class GeminiProvider:
    """Client for Google's Generative Language ``generateContent`` endpoint."""

    def __init__(
        self,
        *,
        api_base: str,
        model_id: str,
        timeout: float = 50.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_base or not api_base.strip():
            raise ProviderConfigError("api_base is required for GeminiProvider")
        if not model_id or not model_id.strip():
            raise ProviderConfigError("model_id is required for GeminiProvider")
        if timeout <= 0:
            raise ProviderConfigError("timeout must be positive")
        self.api_base = api_base.rstrip("/")
        self.model_id = model_id
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.api_base}/models/{self.model_id}:generateContent"

    async def generate_content(self, payload: Dict[str, Any], *, api_key: str) -> Any:
        """POST *payload* and return the decoded JSON body.

        A 2xx body that is not JSON is returned as ``None``; the caller treats
        it like any other malformed payload.
        """
        try:
            # Overall deadline on top of httpx's per-phase timeouts.
            response = await asyncio.wait_for(self._post(payload, api_key), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError("Gemini request timed out") from exc

        try:
            return response.json()
        except ValueError:
            logger.info("Gemini returned a non-JSON body (%d bytes)", len(response.content))
            return None

    async def _post(self, payload: Dict[str, Any], api_key: str) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        params = {"key": api_key}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=headers, params=params)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError("Gemini request timed out") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                raise RateLimitError("Gemini rate limit encountered", status_code=status) from exc
            if status in {400, 401, 403}:
                raise AuthenticationError("Gemini rejected the request or API key", status_code=status) from exc
            raise ProviderError(f"Gemini returned an unexpected status {status}", status_code=status) from exc
        except httpx.RequestError as exc:
            raise ProviderNetworkError("Gemini request failed") from exc
        return response


__all__ = ["GeminiProvider"]
