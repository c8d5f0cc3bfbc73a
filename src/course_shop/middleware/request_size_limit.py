"""
Request Size Limit Middleware
Rejects request bodies larger than the configured limit
"""
import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..exceptions import ErrorResponse
from ..logging_config import get_request_id

logger = logging.getLogger(__name__)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Enforce a maximum request body size

    Declared Content-Length is checked first; bodies sent without one are
    read and measured.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_request_bytes=10 * 1024)
    """

    def __init__(self, app, max_request_bytes: int = 10 * 1024):
        super().__init__(app)
        self.max_request_bytes = max_request_bytes

    def _too_large(self, received: int) -> JSONResponse:
        error_response = ErrorResponse.create(
            message=f"Request body too large. Maximum allowed size is {self.max_request_bytes} bytes.",
            code="REQUEST_TOO_LARGE",
            status_code=413,
            request_id=get_request_id(),
            details={"max_size_bytes": self.max_request_bytes, "received_bytes": received},
        )
        return JSONResponse(content=error_response, status_code=413)

    async def dispatch(self, request: Request, call_next: Callable):
        if request.method in ["GET", "HEAD", "OPTIONS", "DELETE"]:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                error_response = ErrorResponse.create(
                    message="Invalid Content-Length header",
                    code="INVALID_CONTENT_LENGTH",
                    status_code=400,
                    request_id=get_request_id(),
                )
                return JSONResponse(content=error_response, status_code=400)
        else:
            # Starlette caches the body so the route can still read it
            size = len(await request.body())

        if size > self.max_request_bytes:
            logger.warning(
                f"Request size limit exceeded: {size} > {self.max_request_bytes} bytes "
                f"(path: {request.url.path}, method: {request.method})"
            )
            return self._too_large(size)

        return await call_next(request)
