from __future__ import annotations

import json

import httpx
import pytest

from postdigest.services.summarizer.client import GeminiClient
from postdigest.services.summarizer.errors import (
    SummarizerMalformedResponseError,
    SummarizerRateLimitError,
    SummarizerServiceError,
)

ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"


def _client(response: httpx.Response | Exception, calls: list[dict] | None = None) -> GeminiClient:
    async def _request(*, url: str, payload: dict) -> httpx.Response:
        if calls is not None:
            calls.append({"url": url, "payload": payload})
        if isinstance(response, Exception):
            raise response
        return response

    return GeminiClient(api_key="key", model="gemini-1.5-flash", request_fn=_request)


def _reply(text: str) -> httpx.Response:
    body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return httpx.Response(200, content=json.dumps(body).encode("utf-8"))


@pytest.mark.asyncio
async def test_generate_returns_candidate_text() -> None:
    calls: list[dict] = []
    client = _client(_reply('{"title": "t", "summary": "s"}'), calls)

    text = await client.generate("prompt")

    assert text == '{"title": "t", "summary": "s"}'
    assert calls[0]["url"] == ENDPOINT
    assert calls[0]["payload"]["contents"][0]["parts"][0]["text"] == "prompt"


@pytest.mark.asyncio
async def test_generate_maps_429_to_rate_limit() -> None:
    with pytest.raises(SummarizerRateLimitError):
        await _client(httpx.Response(429)).generate("prompt")


@pytest.mark.asyncio
async def test_generate_maps_server_errors_to_service_error() -> None:
    with pytest.raises(SummarizerServiceError):
        await _client(httpx.Response(500, text="boom")).generate("prompt")


@pytest.mark.asyncio
async def test_generate_maps_transport_errors_to_service_error() -> None:
    with pytest.raises(SummarizerServiceError):
        await _client(httpx.ConnectError("unreachable")).generate("prompt")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, content=b'{"candidates": []}'),
        httpx.Response(200, content=b'{"candidates": [{"content": {"parts": [{"text": "  "}]}}]}'),
    ],
)
async def test_generate_rejects_replies_without_text(response: httpx.Response) -> None:
    with pytest.raises(SummarizerMalformedResponseError):
        await _client(response).generate("prompt")
