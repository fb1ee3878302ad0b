from __future__ import annotations

import logging
import re
import time
from secrets import token_urlsafe

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from postdigest.logging_context import set_request_id
from postdigest.logging_utils import structured_log

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

logger = logging.getLogger(__name__)


def parse_skip_paths(raw_value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw_value.split(",") if part.strip())


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a caller-supplied id when it is safe to echo, otherwise mint one."""
    if header_value and _REQUEST_ID_RE.fullmatch(header_value):
        return header_value
    return token_urlsafe(12)


def _level_for_status(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warning"
    return "info"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        *,
        log_requests: bool = True,
        skip_paths: tuple[str, ...] = (),
    ) -> None:
        super().__init__(app)
        self._log_requests = log_requests
        self._skip_paths = skip_paths

    def _should_log(self, path: str) -> bool:
        return self._log_requests and not any(path.startswith(prefix) for prefix in self._skip_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.failed",
                extra={
                    "event": "request.failed",
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - started) * 1000),
                },
            )
            raise
        finally:
            set_request_id(None)

        response.headers[REQUEST_ID_HEADER] = request_id
        if self._should_log(request.url.path):
            structured_log(
                logger,
                _level_for_status(response.status_code),
                "request.completed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000),
            )
        return response
