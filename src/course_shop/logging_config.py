"""
Structured logging for the course shop API

Every log line carries the environment and the id of the request it was
written for. The id comes from the caller's X-Request-ID header when it looks
sane, otherwise a fresh one is generated, and it is echoed on every response,
unhandled 500s included.
"""
import logging
import re
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

# Accepted shape of a caller supplied request id; anything else is replaced
INCOMING_REQUEST_ID = re.compile(r"^[A-Za-z0-9._\-]{1,128}$")

access_logger = logging.getLogger("course_shop.access")

ErrorRenderer = Callable[[Request, Exception], Awaitable[Response]]


def get_request_id() -> Optional[str]:
    """Request id bound to the current request, if any"""
    return request_id_var.get()


def resolve_request_id(header_value: Optional[str]) -> str:
    if header_value and INCOMING_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Bind a request id for the duration of the request and log its outcome

    Unhandled exceptions are rendered by `error_handler` here, while the id is
    still bound, so the 500 envelope and its X-Request-ID header agree.
    """

    def __init__(self, app, error_handler: Optional[ErrorRenderer] = None):
        super().__init__(app)
        self.error_handler = error_handler

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                if self.error_handler is None:
                    raise
                response = await self.error_handler(request, exc)

            response.headers["X-Request-ID"] = request_id
            elapsed_ms = (time.perf_counter() - started) * 1000
            access_logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
            return response
        finally:
            request_id_var.reset(token)


class StructuredFormatter(logging.Formatter):
    """Prefixes each record with `[env] [request id]`"""

    def __init__(self, env: str = "dev", fmt: str = None, datefmt: str = None):
        self.env = env
        if fmt is None:
            fmt = "%(asctime)s [%(env)s] [%(request_id)s] %(levelname)-8s %(name)s: %(message)s"
        if datefmt is None:
            datefmt = "%Y-%m-%d %H:%M:%S"
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or "-"
        record.env = self.env
        return super().format(record)


def setup_logging(env: str = "dev", log_level: str = "INFO"):
    """
    Route all logging to stdout through `StructuredFormatter`

    Args:
        env: Environment name (dev, test, staging, prod)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(StructuredFormatter(env=env))
    root_logger.addHandler(console_handler)

    # Our access log replaces uvicorn's, which has no request id
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger
