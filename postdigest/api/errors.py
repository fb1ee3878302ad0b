from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError

from postdigest.api.envelope import error_response
from postdigest.logging_utils import structured_log
from postdigest.services.feed.errors import RenderTimeout, SessionError
from postdigest.services.ingestion.types import RunAlreadyInProgressError

logger = logging.getLogger(__name__)

# (status_code, code, public message); most specific class first.
DOMAIN_ERRORS: tuple[tuple[type[Exception], int, str, str], ...] = (
    (RunAlreadyInProgressError, 409, "run_in_progress", "An ingestion run is already in progress."),
    (SessionError, 503, "session_unavailable", "No valid login session is available for scraping."),
    (RenderTimeout, 504, "feed_render_timeout", "The profile feed did not load in time."),
)

_HTTP_STATUS_CODES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    500: "internal_error",
}


class ApiException(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details

    @classmethod
    def from_domain_error(cls, exc: Exception, **details: Any) -> ApiException | None:
        for error_type, status_code, code, message in DOMAIN_ERRORS:
            if isinstance(exc, error_type):
                return cls(
                    status_code=status_code,
                    code=code,
                    message=message,
                    details={**details, "cause": str(exc)},
                )
        return None


def register_api_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiException)
    async def _handle_api_exception(request: Request, exc: ApiException):
        if exc.status_code >= 500:
            structured_log(
                logger,
                "warning",
                "api.request_failed",
                code=exc.code,
                status_code=exc.status_code,
                path=request.url.path,
            )
        return error_response(
            request,
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException):
        return error_response(
            request,
            status_code=exc.status_code,
            code=_HTTP_STATUS_CODES.get(exc.status_code, "error"),
            message=str(exc.detail) if exc.detail is not None else "Request failed.",
        )

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_exception(request: Request, exc: RequestValidationError):
        return error_response(
            request,
            status_code=422,
            code="validation_error",
            message="Request validation failed.",
            details=exc.errors(),
        )
