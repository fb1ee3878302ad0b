from __future__ import annotations

from collections.abc import Sequence

from postdigest.services.feed.extractor import FeedExtractor
from postdigest.services.feed.scroll import ScrollStabilizer
from postdigest.services.feed.session import BrowserSessionProvider
from postdigest.services.ingestion.application import FeedIngestionService
from postdigest.services.ingestion.scheduler import SchedulerService
from postdigest.services.summarizer.application import Summarizer
from postdigest.services.summarizer.backoff import BackoffPolicy
from postdigest.services.summarizer.client import GeminiClient
from postdigest.settings import Settings, settings


def build_summarizer(config: Settings = settings) -> Summarizer:
    client = GeminiClient(
        api_key=config.gemini_api_key or "",
        model=config.gemini_model,
        base_url=config.gemini_base_url,
        timeout_seconds=config.gemini_timeout_seconds,
    )
    policy = BackoffPolicy(
        max_attempts=config.summarizer_max_attempts,
        initial_delay_seconds=config.summarizer_initial_backoff_seconds,
    )
    return Summarizer(generator=client, language=config.summary_language, policy=policy)


def build_ingestion_service(config: Settings = settings) -> FeedIngestionService:
    extractor = FeedExtractor(
        stabilizer_factory=lambda: ScrollStabilizer(
            scroll_offset_px=config.feed_scroll_offset_px,
            settle_seconds=config.feed_scroll_settle_seconds,
            max_iterations=config.feed_max_scroll_iterations,
        ),
        wait_timeout_seconds=config.feed_wait_timeout_seconds,
    )
    session_provider = BrowserSessionProvider(
        cookies_path=config.cookies_file_path,
        base_url=config.feed_base_url,
        headless=config.browser_headless,
    )
    return FeedIngestionService(
        session_provider=session_provider,
        summarizer=build_summarizer(config),
        extractor=extractor,
        feed_target_count=config.feed_target_count,
        item_delay_seconds=config.ingestion_item_delay_seconds,
    )


def build_scheduler_service(
    config: Settings = settings,
    *,
    identities: Sequence[str] | None = None,
) -> SchedulerService:
    return SchedulerService(
        ingestion=build_ingestion_service(config),
        identities=identities or config.target_identities,
        enabled=config.scheduler_enabled and identities is None,
        interval_minutes=config.scheduler_interval_minutes,
        max_items_per_identity=min(
            config.ingestion_max_items_per_identity,
            config.scrape_max_save_count,
        ),
    )
