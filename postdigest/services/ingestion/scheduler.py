from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from postdigest.logging_context import bound_run_id
from postdigest.logging_utils import structured_log
from postdigest.services.articles.repository import open_article_store
from postdigest.services.articles.types import ArticleStore
from postdigest.services.feed.errors import FeedExtractionError
from postdigest.services.ingestion.application import FeedIngestionService
from postdigest.services.ingestion.run_guard import RunGuard
from postdigest.services.ingestion.types import (
    IdentityIngestResult,
    RunAlreadyInProgressError,
    RunSummary,
)

StoreFactory = Callable[[], AbstractAsyncContextManager[ArticleStore]]

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task[Any]] = set()


class SchedulerService:
    def __init__(
        self,
        *,
        ingestion: FeedIngestionService,
        identities: Sequence[str],
        enabled: bool = True,
        interval_minutes: int = 30,
        max_items_per_identity: int = 5,
        store_factory: StoreFactory = open_article_store,
        guard: RunGuard | None = None,
    ) -> None:
        self._ingestion = ingestion
        self._identities = tuple(identities)
        self._enabled = enabled
        self._interval_seconds = max(1, int(interval_minutes)) * 60
        self._max_items_per_identity = max(1, int(max_items_per_identity))
        self._store_factory = store_factory
        self._guard = guard or RunGuard()
        self._task: asyncio.Task[None] | None = None

    @property
    def identities(self) -> tuple[str, ...]:
        return self._identities

    @property
    def is_running(self) -> bool:
        return self._guard.is_running

    async def start(self) -> None:
        if not self._enabled:
            structured_log(logger, "info", "scheduler.disabled")
            return
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run_loop(), name="postdigest-scheduler")
        structured_log(
            logger,
            "info",
            "scheduler.started",
            interval_seconds=self._interval_seconds,
            identity_count=len(self._identities),
            max_items_per_identity=self._max_items_per_identity,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        structured_log(logger, "info", "scheduler.stopped")

    async def _run_loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("scheduler.tick_failed", extra={"event": "scheduler.tick_failed"})
            await asyncio.sleep(float(self._interval_seconds))

    async def run_once(self) -> RunSummary | None:
        """Run every identity once; ``None`` when another run holds the guard."""
        if not self._guard.try_acquire():
            structured_log(logger, "info", "scheduler.run_skipped", reason="run_in_progress")
            return None
        try:
            return await self._execute_run()
        finally:
            self._guard.release()

    def start_run_in_background(self) -> bool:
        if not self._guard.try_acquire():
            structured_log(logger, "info", "scheduler.run_skipped", reason="run_in_progress")
            return False
        task = asyncio.create_task(self._execute_run_and_release(), name="postdigest-manual-run")
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return True

    async def run_identity(self, identity: str, *, max_items: int) -> IdentityIngestResult:
        """On-demand ingestion of one identity; extraction errors reach the caller."""
        if not self._guard.try_acquire():
            raise RunAlreadyInProgressError("An ingestion run is already in progress.")
        try:
            async with self._store_factory() as store:
                return await self._ingestion.ingest_identity(
                    store,
                    identity=identity,
                    max_items=max_items,
                )
        finally:
            self._guard.release()

    async def _execute_run_and_release(self) -> None:
        try:
            await self._execute_run()
        except Exception:
            logger.exception("scheduler.run_failed", extra={"event": "scheduler.run_failed"})
        finally:
            self._guard.release()

    async def _execute_run(self) -> RunSummary:
        run_id = uuid4().hex[:12]
        started_at = datetime.now(UTC)
        with bound_run_id(run_id):
            structured_log(logger, "info", "scheduler.run_started", identity_count=len(self._identities))
            results: list[IdentityIngestResult] = []
            for identity in self._identities:
                results.append(await self._run_identity(identity))
            summary = RunSummary(
                run_id=run_id,
                started_at=started_at,
                finished_at=datetime.now(UTC),
                identities=tuple(results),
            )
            structured_log(
                logger,
                "info",
                "scheduler.run_completed",
                identity_count=len(results),
                saved_count=summary.saved_count,
                failed_count=summary.failed_count,
                duration_seconds=round((summary.finished_at - started_at).total_seconds(), 3),
            )
            return summary

    async def _run_identity(self, identity: str) -> IdentityIngestResult:
        # One store, and so one database session, per identity.
        try:
            async with self._store_factory() as store:
                return await self._ingestion.ingest_identity(
                    store,
                    identity=identity,
                    max_items=self._max_items_per_identity,
                )
        except FeedExtractionError as exc:
            structured_log(
                logger,
                "warning",
                "ingestion.identity_extraction_failed",
                identity=identity,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return IdentityIngestResult(identity=identity, error=str(exc))
        except Exception as exc:
            logger.exception(
                "ingestion.identity_failed",
                extra={"event": "ingestion.identity_failed", "identity": identity},
            )
            return IdentityIngestResult(identity=identity, error=str(exc))
