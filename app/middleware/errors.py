"""Error handling middleware and exception handlers."""

from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from app.core.errors import AppError, CircuitBreakerOpenError, UpstreamError
from app.core.logging import get_logger

logger = get_logger()


def _status_and_detail(exc: Exception) -> tuple[int, str]:
    """Map an exception to an HTTP status code and client-facing message."""
    if isinstance(exc, HTTPException):
        return exc.status_code, str(exc.detail)
    if isinstance(exc, RequestValidationError):
        return HTTP_400_BAD_REQUEST, "Request validation failed"
    if isinstance(exc, AppError):
        return exc.status_code, str(exc)
    if isinstance(exc, CircuitBreakerOpenError):
        return HTTP_503_SERVICE_UNAVAILABLE, str(exc)
    if isinstance(exc, UpstreamError):
        return HTTP_502_BAD_GATEWAY, str(exc)
    return HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle any exception and return a JSON response.

    Args:
    ----
        request: The request that caused the exception
        exc: The exception to handle

    Returns:
    -------
        A JSON response with error details
    """
    status_code, detail = _status_and_detail(exc)
    correlation_id = getattr(request.state, "correlation_id", None)

    log = (
        logger.error
        if status_code >= HTTP_500_INTERNAL_SERVER_ERROR
        else logger.warning
    )
    log(
        "request_error",
        error_type=exc.__class__.__name__,
        error_message=str(exc),
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        correlation_id=correlation_id,
    )

    content: dict[str, Any] = {
        "error": exc.__class__.__name__,
        "message": detail,
        "status_code": status_code,
        "correlation_id": correlation_id if correlation_id else "unknown",
    }
    if isinstance(exc, RequestValidationError):
        content["details"] = jsonable_encoder(exc.errors())

    response = JSONResponse(status_code=status_code, content=content)
    if correlation_id:
        response.headers["X-Request-ID"] = correlation_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    """Route framework and application errors through ``handle_exception``."""
    app.add_exception_handler(HTTPException, handle_exception)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, handle_exception  # type: ignore[arg-type]
    )
    app.add_exception_handler(AppError, handle_exception)  # type: ignore[arg-type]
    app.add_exception_handler(UpstreamError, handle_exception)  # type: ignore[arg-type]


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware turning unhandled exceptions into JSON error responses."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle and handle errors.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers or error response
        """
        try:
            return await call_next(request)
        except Exception as exc:
            return await handle_exception(request, exc)
