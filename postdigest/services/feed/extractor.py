from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Protocol

from postdigest.logging_utils import structured_log
from postdigest.services.feed.media import resolve_media
from postdigest.services.feed.scroll import ScrollableFeed, ScrollStabilizer
from postdigest.services.feed.types import ContentRecord, RawFeedItem
from postdigest.services.feed.urls import normalize_permanent_url

logger = logging.getLogger(__name__)


class FeedPage(ScrollableFeed, Protocol):
    """A rendered, authenticated page that can show one identity's feed."""

    async def open_feed(self, identity: str, *, timeout_seconds: float) -> None: ...

    async def collect_items(self) -> list[RawFeedItem]: ...


class FeedExtractor:
    def __init__(
        self,
        *,
        stabilizer_factory=ScrollStabilizer,
        wait_timeout_seconds: float = 25.0,
    ) -> None:
        self._stabilizer_factory = stabilizer_factory
        self._wait_timeout_seconds = max(float(wait_timeout_seconds), 0.5)

    async def extract(
        self,
        page: FeedPage,
        identity: str,
        target_count: int,
    ) -> list[ContentRecord]:
        # RenderTimeout from open_feed propagates to the caller untouched.
        await page.open_feed(identity, timeout_seconds=self._wait_timeout_seconds)
        outcome = await self._stabilizer_factory().run(page, target_count=target_count)
        raw_items = await page.collect_items()
        records = normalize_items(identity, raw_items)
        structured_log(
            logger,
            "info",
            "feed.extracted",
            identity=identity,
            scroll_iterations=outcome.iterations,
            rendered_count=outcome.item_count,
            raw_count=len(raw_items),
            record_count=len(records),
            stop_reason=outcome.reason.value,
        )
        return records


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def normalize_item(identity: str, item: RawFeedItem) -> ContentRecord | None:
    published_at = parse_timestamp(item.timestamp)
    if not item.permalink or published_at is None or item.text is None:
        return None
    url = normalize_permanent_url(item.permalink)
    return ContentRecord(
        identity=identity,
        url=url,
        text=item.text.strip(),
        published_at=published_at,
        media=resolve_media(item, url),
    )


def normalize_items(identity: str, items: Iterable[RawFeedItem]) -> list[ContentRecord]:
    """Validate raw items, collapse repeats of one permanent URL, newest first."""
    records: list[ContentRecord] = []
    seen_urls: set[str] = set()
    for item in items:
        record = normalize_item(identity, item)
        if record is None or record.url in seen_urls:
            continue
        seen_urls.add(record.url)
        records.append(record)
    records.sort(key=lambda record: record.published_at, reverse=True)
    return records
