"""OpenAI-compatible chat completion client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.models import LLMResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


def build_messages(
    system_prompt: str,
    history: list[dict[str, str]],
    user_text: str,
) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        *history,
        {"role": "user", "content": user_text},
    ]


class LLMClient:
    """Calls ``/chat/completions`` and returns an LLMResult instead of raising."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        temperature: float = 0.4,
        max_tokens: int = 250,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, messages: list[dict[str, str]]) -> LLMResult:
        url = f"{self._base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        request_body: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    url, json=request_body, headers=headers, timeout=self._timeout,
                )
        except httpx.HTTPError as exc:
            logger.warning("LLM request failed: %s: %s", type(exc).__name__, exc)
            return LLMResult(ok=False, error=f"{type(exc).__name__}: {exc}")

        if resp.status_code >= 400:
            logger.warning("LLM returned HTTP %s: %s", resp.status_code, resp.text[:500])
            return LLMResult(ok=False, error=f"HTTP {resp.status_code}")

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Malformed LLM response: %s", exc)
            return LLMResult(ok=False, error="malformed response")

        if not isinstance(content, str) or not content.strip():
            return LLMResult(ok=False, error="empty response")
        return LLMResult(ok=True, text=content.strip())
