from __future__ import annotations

from postdigest.services.ingestion.run_guard import JobState, RunGuard


def test_only_one_holder_at_a_time() -> None:
    guard = RunGuard()

    assert guard.state is JobState.IDLE
    assert guard.try_acquire() is True
    assert guard.try_acquire() is False
    assert guard.is_running is True

    guard.release()

    assert guard.state is JobState.IDLE
    assert guard.try_acquire() is True


def test_release_when_idle_is_harmless() -> None:
    guard = RunGuard()

    guard.release()

    assert guard.is_running is False
