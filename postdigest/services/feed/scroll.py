from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from postdigest.logging_utils import structured_log

DEFAULT_SCROLL_OFFSET_PX = 2500
DEFAULT_SETTLE_SECONDS = 2.0
DEFAULT_MAX_ITERATIONS = 10

logger = logging.getLogger(__name__)


class ScrollState(StrEnum):
    LOADING = "loading"
    SCROLLING = "scrolling"
    MEASURING = "measuring"
    DONE = "done"


class StopReason(StrEnum):
    TARGET_REACHED = "target_reached"
    STABILIZED = "stabilized"
    MAX_ITERATIONS = "max_iterations"


class ScrollableFeed(Protocol):
    async def scroll_by(self, offset_px: int) -> None: ...

    async def settle(self, seconds: float) -> None: ...

    async def count_items(self) -> int: ...


@dataclass(frozen=True)
class ScrollOutcome:
    iterations: int
    item_count: int
    reason: StopReason


class ScrollStabilizer:
    """Scrolls a lazily loaded feed until it stops growing or is big enough.

    Each iteration scrolls, waits for the page to settle and counts rendered
    items. The loop ends on the first of: the target count is reached, a count
    repeats the previous one, or the iteration bound is hit.
    """

    def __init__(
        self,
        *,
        scroll_offset_px: int = DEFAULT_SCROLL_OFFSET_PX,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self._scroll_offset_px = int(scroll_offset_px)
        self._settle_seconds = max(float(settle_seconds), 0.0)
        self._max_iterations = max(1, int(max_iterations))
        self.state = ScrollState.LOADING

    async def run(self, feed: ScrollableFeed, *, target_count: int) -> ScrollOutcome:
        target = max(1, int(target_count))
        previous_count = 0
        item_count = 0
        iterations = 0
        reason = StopReason.MAX_ITERATIONS

        while iterations < self._max_iterations:
            self.state = ScrollState.SCROLLING
            await feed.scroll_by(self._scroll_offset_px)
            await feed.settle(self._settle_seconds)
            iterations += 1

            self.state = ScrollState.MEASURING
            item_count = await feed.count_items()
            if item_count >= target:
                reason = StopReason.TARGET_REACHED
                break
            if item_count == previous_count:
                reason = StopReason.STABILIZED
                break
            previous_count = item_count

        self.state = ScrollState.DONE
        structured_log(
            logger,
            "debug",
            "feed.scroll_completed",
            iterations=iterations,
            item_count=item_count,
            target_count=target,
            reason=reason.value,
        )
        return ScrollOutcome(iterations=iterations, item_count=item_count, reason=reason)
