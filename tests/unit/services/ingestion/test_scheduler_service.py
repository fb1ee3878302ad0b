from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import pytest

from postdigest.services.feed.errors import RenderTimeout, SessionError
from postdigest.services.ingestion.run_guard import RunGuard
from postdigest.services.ingestion.scheduler import SchedulerService
from postdigest.services.ingestion.types import IdentityIngestResult, RunAlreadyInProgressError


class FakeIngestion:
    def __init__(self, *, failures: dict[str, Exception] | None = None, gate: asyncio.Event | None = None):
        self.failures = failures or {}
        self.gate = gate
        self.calls: list[tuple[str, int]] = []

    async def ingest_identity(self, store, *, identity: str, max_items: int) -> IdentityIngestResult:
        self.calls.append((identity, max_items))
        if self.gate is not None:
            await self.gate.wait()
        if identity in self.failures:
            raise self.failures[identity]
        return IdentityIngestResult(identity=identity, scraped_count=3, new_count=2, saved_count=2)


@asynccontextmanager
async def _store_factory():
    yield object()


def _scheduler(ingestion: FakeIngestion, identities=("nasa", "esa"), **kwargs) -> SchedulerService:
    return SchedulerService(
        ingestion=ingestion,
        identities=identities,
        enabled=False,
        max_items_per_identity=4,
        store_factory=_store_factory,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_run_once_visits_identities_in_order() -> None:
    ingestion = FakeIngestion()

    summary = await _scheduler(ingestion).run_once()

    assert summary is not None
    assert ingestion.calls == [("nasa", 4), ("esa", 4)]
    assert summary.saved_count == 4
    assert summary.failed_count == 0


@pytest.mark.asyncio
async def test_extraction_failure_does_not_stop_the_run() -> None:
    ingestion = FakeIngestion(
        failures={
            "nasa": RenderTimeout("feed did not render"),
            "esa": SessionError("cookies missing"),
        }
    )

    summary = await _scheduler(ingestion, identities=("nasa", "esa", "jaxa")).run_once()

    assert [result.identity for result in summary.identities] == ["nasa", "esa", "jaxa"]
    assert summary.failed_count == 2
    assert summary.identities[0].error == "feed did not render"
    assert summary.identities[2].saved_count == 2


@pytest.mark.asyncio
async def test_unexpected_identity_error_is_recorded() -> None:
    ingestion = FakeIngestion(failures={"nasa": ValueError("bad row")})

    summary = await _scheduler(ingestion).run_once()

    assert summary.identities[0].failed is True
    assert summary.identities[1].failed is False


@pytest.mark.asyncio
async def test_overlapping_run_is_a_noop() -> None:
    gate = asyncio.Event()
    ingestion = FakeIngestion(gate=gate)
    scheduler = _scheduler(ingestion, identities=("nasa",))

    first = asyncio.create_task(scheduler.run_once())
    await asyncio.sleep(0)
    assert scheduler.is_running is True

    second = await scheduler.run_once()
    gate.set()
    first_summary = await first

    assert second is None
    assert first_summary is not None
    assert ingestion.calls == [("nasa", 4)]
    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_run_identity_refuses_while_run_active() -> None:
    guard = RunGuard()
    guard.try_acquire()
    scheduler = _scheduler(FakeIngestion(), guard=guard)

    with pytest.raises(RunAlreadyInProgressError):
        await scheduler.run_identity("nasa", max_items=5)


@pytest.mark.asyncio
async def test_run_identity_propagates_extraction_errors_and_releases_guard() -> None:
    scheduler = _scheduler(FakeIngestion(failures={"nasa": SessionError("no cookies")}))

    with pytest.raises(SessionError):
        await scheduler.run_identity("nasa", max_items=5)

    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_background_run_holds_guard_until_finished() -> None:
    gate = asyncio.Event()
    scheduler = _scheduler(FakeIngestion(gate=gate), identities=("nasa",))

    assert scheduler.start_run_in_background() is True
    assert scheduler.start_run_in_background() is False

    gate.set()
    for _ in range(10):
        await asyncio.sleep(0)
        if not scheduler.is_running:
            break

    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_disabled_scheduler_does_not_start_loop() -> None:
    scheduler = _scheduler(FakeIngestion())

    await scheduler.start()
    await scheduler.stop()

    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_each_identity_gets_its_own_store() -> None:
    opened: list[object] = []
    closed: list[object] = []

    @asynccontextmanager
    async def _counting_store_factory():
        store = object()
        opened.append(store)
        try:
            yield store
        finally:
            closed.append(store)

    ingestion = FakeIngestion(failures={"nasa": ValueError("session broken")})
    scheduler = SchedulerService(
        ingestion=ingestion,
        identities=("nasa", "esa", "jaxa"),
        enabled=False,
        store_factory=_counting_store_factory,
    )

    summary = await scheduler.run_once()

    assert len(opened) == 3
    assert len({id(store) for store in opened}) == 3
    assert closed == opened
    assert [result.failed for result in summary.identities] == [True, False, False]


@pytest.mark.asyncio
async def test_store_that_cannot_open_fails_only_its_identity() -> None:
    calls = 0

    @asynccontextmanager
    async def _store_factory_down_once():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise ConnectionError("database unavailable")
        yield object()

    scheduler = SchedulerService(
        ingestion=FakeIngestion(),
        identities=("nasa", "esa"),
        enabled=False,
        store_factory=_store_factory_down_once,
    )

    summary = await scheduler.run_once()

    assert summary.identities[0].error == "database unavailable"
    assert summary.identities[1].saved_count == 2
