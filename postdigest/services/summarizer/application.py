from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from tenacity import RetryCallState

from postdigest.logging_utils import structured_log
from postdigest.services.summarizer.backoff import BackoffPolicy, SleepFn
from postdigest.services.summarizer.errors import (
    SummarizerError,
    SummarizerMalformedResponseError,
    SummarizerRateLimitError,
)
from postdigest.services.summarizer.prompts import build_summary_prompt

_CODE_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n?|\n?\s*```\s*$")

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


@dataclass(frozen=True)
class SummaryResult:
    title: str
    summary: str


@dataclass(frozen=True)
class SummaryFailure:
    reason: str
    attempts: int
    detail: str | None = None


def strip_code_fences(reply: str) -> str:
    return _CODE_FENCE_RE.sub("", reply.strip()).strip()


def parse_summary_reply(reply: str) -> SummaryResult:
    cleaned = strip_code_fences(reply)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SummarizerMalformedResponseError("Reply is not valid JSON") from exc
    if not isinstance(data, dict):
        raise SummarizerMalformedResponseError("Reply JSON is not an object")
    title = data.get("title")
    summary = data.get("summary")
    if not isinstance(title, str) or not isinstance(summary, str):
        raise SummarizerMalformedResponseError("Reply is missing title or summary")
    if not title.strip() or not summary.strip():
        raise SummarizerMalformedResponseError("Reply has an empty title or summary")
    return SummaryResult(title=title.strip(), summary=summary.strip())


class Summarizer:
    def __init__(
        self,
        *,
        generator: TextGenerator,
        language: str = "English",
        policy: BackoffPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._generator = generator
        self._language = language
        self._policy = policy or BackoffPolicy()
        self._sleep = sleep

    async def summarize(self, text: str) -> SummaryResult | SummaryFailure:
        if not text or not text.strip():
            return SummaryFailure(reason="empty_input", attempts=0)

        prompt = build_summary_prompt(text, language=self._language)
        retrying = self._policy.retrying(
            retry_on=Exception,
            sleep=self._sleep,
            before_sleep=self._log_before_retry,
        )
        attempts = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    reply = await self._generator.generate(prompt)
                    return parse_summary_reply(reply)
        except Exception as exc:
            reason = getattr(exc, "reason", SummarizerError.reason)
            structured_log(
                logger,
                "warning",
                "summarizer.attempts_exhausted",
                attempts=attempts,
                reason=reason,
                error=str(exc),
            )
            return SummaryFailure(reason=reason, attempts=attempts, detail=str(exc))

    def _log_before_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if isinstance(exc, SummarizerRateLimitError):
            structured_log(
                logger,
                "warning",
                "summarizer.rate_limited",
                attempt=retry_state.attempt_number,
                backoff_seconds=delay,
            )
            return
        structured_log(
            logger,
            "error",
            "summarizer.attempt_failed",
            attempt=retry_state.attempt_number,
            backoff_seconds=delay,
            reason=getattr(exc, "reason", "unknown"),
            error=str(exc),
        )
