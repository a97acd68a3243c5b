"""
HTTP middleware for the Mini App Auth Backend.
Rejects requests from non-whitelisted origins and logs completed requests.
"""

import time
from typing import Iterable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.exceptions import (
    OriginNotAllowedError,
    build_error_content,
    get_exception_status_code,
)
from app.core.logging import get_logger, log_request

logger = get_logger(__name__)


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """
    Reject requests whose Origin header is not whitelisted.

    CORSMiddleware only withholds CORS headers from foreign origins; this
    guard stops such requests before they reach a route.
    """

    def __init__(self, app, allowed_origins: Iterable[str], allow_missing_origin: bool = True):
        super().__init__(app)
        self.allowed_origins = set(allowed_origins)
        self.allow_missing_origin = allow_missing_origin

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")

        if origin is None:
            if self.allow_missing_origin:
                return await call_next(request)
            origin = ""

        if origin not in self.allowed_origins:
            logger.warning("CORS rejected origin", origin=origin, path=request.url.path)
            exc = OriginNotAllowedError(origin)
            return JSONResponse(
                status_code=get_exception_status_code(exc),
                content=build_error_content(exc),
            )

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = round(time.perf_counter() - start, 4)
            log_request(
                request.method,
                request.url.path,
                status_code,
                duration,
            )
