from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, Query, Request

from postdigest.api.envelope import success_payload
from postdigest.api.errors import ApiException
from postdigest.api.runtime_deps import get_scheduler_service
from postdigest.api.schemas import ArticleData, ScrapeResultData, ScrapeResultEnvelope
from postdigest.services.ingestion.scheduler import SchedulerService
from postdigest.services.ingestion.types import IdentityIngestResult
from postdigest.settings import clamp_save_count

_IDENTITY_RE = re.compile(r"^[A-Za-z0-9_]{1,15}$")

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/scrape", tags=["api-scrape"])


def _validated_identity(raw_identity: str) -> str:
    identity = raw_identity.strip().lstrip("@")
    if not _IDENTITY_RE.fullmatch(identity):
        raise ApiException(
            status_code=400,
            code="invalid_identity",
            message="Identity must be 1-15 letters, digits or underscores.",
            details={"identity": raw_identity},
        )
    return identity


def _result_message(result: IdentityIngestResult) -> str:
    if result.scraped_count == 0:
        return "No posts found on the profile."
    if result.new_count == 0:
        return "Scraping complete. No new posts found."
    return "Scrape and save operation completed successfully."


@router.get("/{identity}", response_model=ScrapeResultEnvelope)
async def scrape_identity(
    request: Request,
    identity: str,
    count: int | None = Query(default=None),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    identity = _validated_identity(identity)
    try:
        result = await scheduler.run_identity(identity, max_items=clamp_save_count(count))
    except Exception as exc:
        api_error = ApiException.from_domain_error(exc, identity=identity)
        if api_error is None:
            logger.exception("api.scrape.failed", extra={"event": "api.scrape.failed", "identity": identity})
            api_error = ApiException(
                status_code=500,
                code="scrape_failed",
                message="Failed to scrape or save posts.",
                details={"identity": identity, "cause": str(exc)},
            )
        raise api_error from exc

    data = ScrapeResultData(
        message=_result_message(result),
        identity=identity,
        scraped_count=result.scraped_count,
        new_count=result.new_count,
        saved_count=result.saved_count,
        skipped_count=result.skipped_count,
        articles=[ArticleData.from_article(article) for article in result.saved_articles],
    )
    return success_payload(request, data=data.model_dump(mode="json"))
