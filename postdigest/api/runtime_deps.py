from __future__ import annotations

from postdigest.services.ingestion.scheduler import SchedulerService
from postdigest.services.runtime import build_scheduler_service

_scheduler_service: SchedulerService | None = None


def get_scheduler_service() -> SchedulerService:
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = build_scheduler_service()
    return _scheduler_service
