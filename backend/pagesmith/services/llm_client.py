"""
Gemini client for the content model.

Uses the Generative Language REST API (`models/{model}:generateContent`)
via httpx. The model returns HTML documents only; it never sees the
ledger or the project state.

Configuration:
  GEMINI_API_KEY — server-side only (never exposed to clients)
  CONTENT_MODEL  — defaults to gemini-2.0-flash

Safety:
  • The raw upstream error body is logged, never returned — callers get
    ModelUnavailable and the catalogue message.
  • The wall-clock timeout is enforced by the orchestrator with
    asyncio.wait_for; the httpx timeout here is only a socket guard.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from pagesmith.core.config import settings
from pagesmith.core.errors import ConfigurationError, ModelUnavailable

logger = logging.getLogger(__name__)

_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class ContentModel(Protocol):
    """Anything that turns a prompt into text."""

    @property
    def configured(self) -> bool: ...

    async def generate(self, prompt: str) -> str: ...


def _extract_text(data: dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = data.get("candidates") or []
    for cand in candidates:
        content = cand.get("content") if isinstance(cand, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
        if texts:
            return "".join(texts)
    return ""


class GeminiContentModel:
    """Text generation over the Gemini REST endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.CONTENT_MODEL
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the model's text.

        Raises:
            ConfigurationError: GEMINI_API_KEY is not set.
            ModelUnavailable:   transport failure or non-200 answer.
        """
        if not self.configured:
            raise ConfigurationError("GEMINI_API_KEY is not configured")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.7},
        }
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        url = f"{_GEMINI_BASE_URL}/models/{self.model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=180.0, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Gemini transport error: %s", exc)
            raise ModelUnavailable("content model unreachable") from exc

        if response.status_code != 200:
            logger.error(
                "Gemini API error: status=%d body=%s",
                response.status_code,
                response.text[:500],
            )
            raise ModelUnavailable(f"content model returned {response.status_code}")

        try:
            text = _extract_text(response.json())
        except ValueError as exc:
            logger.error("Failed to parse Gemini response: %s", exc)
            raise ModelUnavailable("content model returned unparseable JSON") from exc

        logger.info("Gemini returned %d characters (model=%s)", len(text), self.model)
        return text


def get_content_model() -> ContentModel:
    """FastAPI dependency — overridden in tests with a fake model."""
    return GeminiContentModel()
