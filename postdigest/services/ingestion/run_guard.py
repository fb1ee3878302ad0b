from __future__ import annotations

import threading
from enum import StrEnum


class JobState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


class RunGuard:
    """Single-instance, non-reentrant run guard.

    ``try_acquire`` is atomic: of any number of concurrent callers exactly one
    sees ``True`` until ``release`` is called. Only valid within one process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def state(self) -> JobState:
        return JobState.RUNNING if self._lock.locked() else JobState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state is JobState.RUNNING

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()
