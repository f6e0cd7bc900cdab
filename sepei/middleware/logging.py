"""Request logging middleware."""
import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from sepei.core.logging_config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
API_VERSION_HEADER = "X-API-Version"

# Polled by the load balancer every few seconds
QUIET_PATHS = frozenset({"/health"})


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an id, bind it to the structlog context and log
    how the request ended.

    The id is taken from an incoming X-Request-ID header when the proxy in
    front of the app already assigned one, so both logs can be correlated.
    Responses carry the id back, plus the API version when one is given.
    """

    def __init__(self, app: ASGIApp, api_version: Optional[str] = None):
        super().__init__(app)
        self.api_version = api_version

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        quiet = request.url.path in QUIET_PATHS
        start = time.perf_counter()
        if not quiet:
            logger.info(
                "request_started",
                client_host=request.client.host if request.client else None,
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                exception=str(exc),
                exception_type=type(exc).__name__,
                duration_ms=_elapsed_ms(start),
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        if self.api_version:
            response.headers[API_VERSION_HEADER] = self.api_version

        if response.status_code >= 500:
            logger.warning("request_completed", status_code=response.status_code, duration_ms=_elapsed_ms(start))
        elif not quiet:
            logger.info("request_completed", status_code=response.status_code, duration_ms=_elapsed_ms(start))
        return response
