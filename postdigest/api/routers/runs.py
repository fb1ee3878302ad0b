from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse

from postdigest.api.envelope import success_payload
from postdigest.api.errors import ApiException
from postdigest.api.runtime_deps import get_scheduler_service
from postdigest.api.schemas import RunTriggerData, RunTriggerEnvelope
from postdigest.services.ingestion.scheduler import SchedulerService
from postdigest.services.ingestion.types import RunAlreadyInProgressError

router = APIRouter(prefix="/runs", tags=["api-runs"])


@router.post("", response_model=RunTriggerEnvelope, status_code=202)
async def trigger_run(
    request: Request,
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    if not scheduler.start_run_in_background():
        raise ApiException.from_domain_error(RunAlreadyInProgressError("Manual run rejected."))
    data = RunTriggerData(status="started", identities=list(scheduler.identities))
    return JSONResponse(status_code=202, content=success_payload(request, data=data.model_dump()))
