from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import httpx

from postdigest.logging_utils import structured_log
from postdigest.services.summarizer.errors import (
    SummarizerMalformedResponseError,
    SummarizerRateLimitError,
    SummarizerServiceError,
)

GenerateRequestFn = Callable[..., Awaitable[httpx.Response]]
logger = logging.getLogger(__name__)


class GeminiClient:
    """Thin client for the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout_seconds: float = 30.0,
        request_fn: GenerateRequestFn | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(float(timeout_seconds), 1.0)
        self._request_fn = request_fn or self._post

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/v1beta/models/{self._model}:generateContent"

    async def generate(self, prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        try:
            response = await self._request_fn(url=self.endpoint, payload=payload)
        except httpx.HTTPError as exc:
            raise SummarizerServiceError(f"Generation request failed: {exc}") from exc

        if response.status_code == 429:
            raise SummarizerRateLimitError("Generation service rate limit exceeded (429)")
        if response.status_code >= 400:
            structured_log(
                logger,
                "warning",
                "summarizer.http_error",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise SummarizerServiceError(f"Generation service error {response.status_code}")
        return _reply_text(response)

    async def _post(self, *, url: str, payload: dict) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            return await client.post(url, params={"key": self._api_key}, json=payload)


def _reply_text(response: httpx.Response) -> str:
    try:
        data = response.json()
        parts = data["candidates"][0]["content"]["parts"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise SummarizerMalformedResponseError("Generation reply has no candidate text") from exc
    text = "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))
    if not text.strip():
        raise SummarizerMalformedResponseError("Generation reply text is empty")
    return text
