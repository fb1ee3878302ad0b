from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException

from postdigest.api.errors import register_api_exception_handlers
from postdigest.api.router import router as api_router
from postdigest.api.runtime_deps import get_scheduler_service
from postdigest.db.session import check_database, close_engine
from postdigest.http.middleware import RequestLoggingMiddleware, parse_skip_paths
from postdigest.logging_config import configure_logging, parse_redact_fields
from postdigest.logging_utils import structured_log
from postdigest.services.feed.session import ensure_cookie_file
from postdigest.settings import settings, validate_required_settings

logger = logging.getLogger(__name__)

configure_logging(
    level=settings.log_level,
    log_format=settings.log_format,
    redact_fields=parse_redact_fields(settings.log_redact_fields),
    include_uvicorn_access=settings.log_uvicorn_access,
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    validate_required_settings(settings)
    ensure_cookie_file(settings.cookies_file_path, settings.twitter_cookies)
    structured_log(
        logger,
        "info",
        "app.startup",
        identities=list(settings.target_identities),
        scheduler_enabled=settings.scheduler_enabled,
        log_format=settings.log_format,
    )
    scheduler_service = get_scheduler_service()
    await scheduler_service.start()
    yield
    await scheduler_service.stop()
    await close_engine()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
register_api_exception_handlers(app)
app.add_middleware(
    RequestLoggingMiddleware,
    log_requests=settings.log_requests,
    skip_paths=parse_skip_paths(settings.log_request_skip_paths),
)
app.include_router(api_router)


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    if await check_database():
        return {"status": "ok"}
    raise HTTPException(status_code=500, detail="database unavailable")
