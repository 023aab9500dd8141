"""Ollama client with async support and retry logic.

Talks to the Ollama HTTP API: /api/chat for tool calling, /api/generate for
single-shot planning.
"""

from __future__ import annotations

import asyncio
import os
import random
from typing import Any

import httpx

from .config import LLMConfig

RETRY_STATUS_CODES = (429, 503, 504)


class OllamaClient:
    """
    Async HTTP client for a local Ollama server with retry/backoff logic.

    Features:
    - Exponential backoff with jitter for overload responses
    - Automatic retry on network failures
    - SANDPATCH_DISABLE_NETWORK=1 blocks every request (hermetic tests)
    """

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or LLMConfig()
        self.retry_max = max(1, int(self.config.retry_max))

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{endpoint}"

    async def _backoff(self, attempt: int) -> None:
        sleep_time = (2**attempt) * 0.5
        jitter = random.uniform(0, 0.1 * sleep_time)
        await asyncio.sleep(sleep_time + jitter)

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST with retry/backoff.

        Retry strategy:
        - 429/503/504: Exponential backoff with jitter
        - Other 4xx/5xx: No retry
        - Network errors: Retry with backoff

        Raises:
            RuntimeError: Network disabled, or retries exhausted
            httpx.HTTPStatusError: Non-retryable HTTP error
        """
        if os.getenv("SANDPATCH_DISABLE_NETWORK") == "1":
            raise RuntimeError("Network access disabled (SANDPATCH_DISABLE_NETWORK=1)")

        for attempt in range(self.retry_max):
            try:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    response = await client.post(self._url(endpoint), json=payload)

                if response.status_code == 200:
                    return response.json()

                if response.status_code in RETRY_STATUS_CODES:
                    await self._backoff(attempt)
                    continue

                response.raise_for_status()
                raise RuntimeError(f"Unexpected status {response.status_code} from {endpoint}")

            except (httpx.NetworkError, httpx.TimeoutException) as e:
                if attempt < self.retry_max - 1:
                    await self._backoff(attempt)
                    continue
                raise RuntimeError(f"Network error after {self.retry_max} attempts: {e}") from e

        raise RuntimeError(f"Max retries ({self.retry_max}) exceeded")

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """
        Send one non-streaming chat request.

        Args:
            messages: Conversation so far
            tools: Function-calling tool definitions
            temperature: Sampling temperature (default: from config)

        Returns:
            Ollama response dict; tool calls live under message.tool_calls
        """
        payload: dict[str, Any] = {
            "model": self.config.model_id,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self.config.temperature if temperature is None else temperature
            },
        }
        if tools:
            payload["tools"] = tools
        return await self._post("/api/chat", payload)

    async def generate(self, prompt: str, format: dict[str, Any] | str | None = None) -> dict[str, Any]:
        """Single-shot completion, optionally constrained to a JSON schema."""
        payload: dict[str, Any] = {
            "model": self.config.model_id,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self.config.temperature},
        }
        if format is not None:
            payload["format"] = format
        return await self._post("/api/generate", payload)

    async def health_check(self) -> bool:
        """True if the server answers /api/tags."""
        if os.getenv("SANDPATCH_DISABLE_NETWORK") == "1":
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(self._url("/api/tags"))
                return response.status_code == 200
        except httpx.HTTPError:
            return False
