from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Protocol

from postdigest.db.models import ArticleOrigin
from postdigest.logging_utils import structured_log
from postdigest.services.articles.dedup import filter_new
from postdigest.services.articles.types import ArticleStore, NewArticle
from postdigest.services.feed.extractor import FeedExtractor, FeedPage
from postdigest.services.feed.types import ContentRecord
from postdigest.services.ingestion.types import IdentityIngestResult
from postdigest.services.summarizer.application import SummaryFailure, SummaryResult
from postdigest.services.summarizer.backoff import SleepFn

logger = logging.getLogger(__name__)


class SessionProvider(Protocol):
    def open(self, identity: str) -> AbstractAsyncContextManager[FeedPage]: ...


class ContentSummarizer(Protocol):
    async def summarize(self, text: str) -> SummaryResult | SummaryFailure: ...


def source_label(identity: str) -> str:
    return f"Twitter @{identity}"


def build_article(record: ContentRecord, summary: SummaryResult) -> NewArticle:
    return NewArticle(
        title=summary.title,
        summary=summary.summary,
        body=record.text,
        url=record.url,
        source=source_label(record.identity),
        created_by=ArticleOrigin.TWITTER,
        published_at=record.published_at,
        media=record.media,
    )


class FeedIngestionService:
    """Extract -> deduplicate -> summarize -> persist for one identity at a time."""

    def __init__(
        self,
        *,
        session_provider: SessionProvider,
        summarizer: ContentSummarizer,
        extractor: FeedExtractor | None = None,
        feed_target_count: int = 40,
        item_delay_seconds: float = 2.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._session_provider = session_provider
        self._summarizer = summarizer
        self._extractor = extractor or FeedExtractor()
        self._feed_target_count = max(1, int(feed_target_count))
        self._item_delay_seconds = max(float(item_delay_seconds), 0.0)
        self._sleep = sleep

    async def extract(self, identity: str) -> list[ContentRecord]:
        # The browser lives only for the extraction step.
        async with self._session_provider.open(identity) as page:
            return await self._extractor.extract(page, identity, self._feed_target_count)

    async def ingest_identity(
        self,
        store: ArticleStore,
        *,
        identity: str,
        max_items: int,
    ) -> IdentityIngestResult:
        records = await self.extract(identity)
        new_records = await filter_new(records, store.existing_urls)
        selected = new_records[: max(0, int(max_items))]
        structured_log(
            logger,
            "info",
            "ingestion.identity_candidates",
            identity=identity,
            scraped_count=len(records),
            new_count=len(new_records),
            selected_count=len(selected),
        )

        saved: list[NewArticle] = []
        skipped_count = 0
        for index, record in enumerate(selected):
            if index > 0:
                await self._sleep(self._item_delay_seconds)
            article = await self._summarize_record(record)
            if article is None:
                skipped_count += 1
                continue
            try:
                inserted = await store.insert_if_absent(article)
            except Exception:
                logger.exception(
                    "ingestion.record_persist_failed",
                    extra={
                        "event": "ingestion.record_persist_failed",
                        "identity": identity,
                        "url": article.url,
                    },
                )
                skipped_count += 1
                continue
            if inserted:
                saved.append(article)

        result = IdentityIngestResult(
            identity=identity,
            scraped_count=len(records),
            new_count=len(new_records),
            saved_count=len(saved),
            skipped_count=skipped_count,
            saved_articles=tuple(saved),
        )
        structured_log(
            logger,
            "info",
            "ingestion.identity_completed",
            identity=identity,
            scraped_count=result.scraped_count,
            new_count=result.new_count,
            saved_count=result.saved_count,
            skipped_count=result.skipped_count,
        )
        return result

    async def _summarize_record(self, record: ContentRecord) -> NewArticle | None:
        outcome = await self._summarizer.summarize(record.text)
        if isinstance(outcome, SummaryFailure):
            structured_log(
                logger,
                "warning",
                "ingestion.record_skipped",
                identity=record.identity,
                url=record.url,
                reason=outcome.reason,
                attempts=outcome.attempts,
            )
            return None
        return build_article(record, outcome)
