"""Correlation ID middleware for request tracking."""

import re
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from structlog.contextvars import bind_contextvars, clear_contextvars

from app.core.logging import get_logger

logger = get_logger()

CORRELATION_HEADER = "X-Request-ID"

# Caller-supplied IDs are echoed back, so keep them short and header-safe
_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle request correlation IDs.

    Reuses a well-formed ``X-Request-ID`` from the caller or generates a UUID,
    then exposes it on request state, the response headers and the structured
    logging context.
    """

    @staticmethod
    def _get_correlation_id(request: Request) -> str:
        """
        Get or generate a correlation ID.

        Args:
        ----
            request: The incoming request

        Returns:
        -------
            str: The caller's ID when valid, otherwise a new UUID4
        """
        header_value = request.headers.get(CORRELATION_HEADER, "")
        if header_value and _VALID_ID.match(header_value):
            return header_value
        return str(uuid.uuid4())

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers
        """
        clear_contextvars()

        correlation_id = self._get_correlation_id(request)
        bind_contextvars(correlation_id=correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
