"""
Domain errors and exception handlers with request ID support
Standardized error response format: { code, message, status_code, details?, request_id }
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from typing import Optional, Dict, Any

from .logging_config import get_request_id

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that surface to the request boundary"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(AppError):
    """Missing or malformed input"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthError(AppError):
    """Bad credentials or token"""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_ERROR"


class AuthorizationError(AppError):
    """Authenticated but not allowed"""
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class ExpiredError(AppError):
    """Password reset code is past its expiry"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "EXPIRED"


class StateError(AppError):
    """No password reset is pending"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_STATE"


class DeliveryError(AppError):
    """Mail could not be sent"""
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "DELIVERY_FAILED"


class GatewayError(AppError):
    """Payment or file-sharing provider call failed"""
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "GATEWAY_ERROR"


class PendingError(AppError):
    """Invoice is not paid yet. Non-terminal, reported with a 2xx status"""
    status_code = status.HTTP_202_ACCEPTED
    code = "PAYMENT_PENDING"


class ErrorResponse:
    """
    Standard error response format

    Schema: { code, message, status_code, details?, request_id }
    """

    @staticmethod
    def create(
        message: str,
        code: str,
        status_code: int,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> dict:
        if request_id is None:
            request_id = get_request_id()

        response = {
            "code": code,
            "message": message,
            "status_code": status_code,
        }
        if request_id:
            response["request_id"] = request_id
        if details:
            response["details"] = details
        return response


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors"""
    request_id = get_request_id()

    if isinstance(exc, PendingError):
        logger.info(f"{exc.code}: {exc.message}", extra={"path": request.url.path})
    else:
        logger.warning(
            f"HTTP {exc.status_code} {exc.code}: {exc.message}",
            extra={"request_id": request_id, "path": request.url.path}
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.create(
            message=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            request_id=request_id,
            details=exc.details,
        )
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with request ID"""
    request_id = get_request_id()

    error_code_map = {
        400: "BAD_REQUEST",
        401: "AUTH_ERROR",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        413: "REQUEST_TOO_LARGE",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMITED",
        500: "INTERNAL_ERROR",
        503: "SERVICE_UNAVAILABLE"
    }
    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")
    error_message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code} error"

    logger.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        extra={"request_id": request_id, "path": request.url.path}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.create(
            message=error_message,
            code=error_code,
            status_code=exc.status_code,
            request_id=request_id,
        ),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation exceptions with request ID"""
    request_id = get_request_id()

    errors = jsonable_encoder(exc.errors())
    detail = "; ".join(f"{err['loc']}: {err['msg']}" for err in errors)

    logger.warning(
        f"Validation error: {detail}",
        extra={"request_id": request_id, "path": request.url.path}
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse.create(
            message=f"Validation error: {detail}",
            code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            request_id=request_id,
            details={"errors": errors},
        )
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking internals outside dev"""
    request_id = get_request_id()

    error_message = "Internal server error"
    error_details = None

    config = getattr(request.app.state, "config", None)
    if config is not None and config.is_dev:
        error_message = f"Internal server error: {str(exc)}"
        error_details = {"exception_type": type(exc).__name__}

    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={"request_id": request_id, "path": request.url.path}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse.create(
            message=error_message,
            code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
            details=error_details,
        )
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
