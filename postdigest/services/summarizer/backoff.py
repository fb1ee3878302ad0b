from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class BackoffPolicy:
    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_for_attempt(self, attempt_number: int) -> float:
        """Wait applied after failed attempt ``attempt_number`` (1-based)."""
        if attempt_number < 1:
            raise ValueError("attempt_number must be >= 1")
        return float(self.initial_delay_seconds * self.multiplier ** (attempt_number - 1))

    def delays(self) -> Iterator[float]:
        """Every wait a fully exhausted call sleeps through, in order."""
        for attempt_number in range(1, self.max_attempts):
            yield self.delay_for_attempt(attempt_number)

    def retrying(
        self,
        *,
        retry_on: type[BaseException] | tuple[type[BaseException], ...],
        sleep: SleepFn,
        before_sleep=None,
    ) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay_seconds, exp_base=self.multiplier),
            retry=retry_if_exception_type(retry_on),
            before_sleep=before_sleep,
            sleep=sleep,
            reraise=True,
        )
