"""
Correlation ID propagation for request tracing.
"""

import uuid
from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from contacts_api.shared.exceptions import DEFAULT_ERROR_MESSAGE
from contacts_api.shared.logging import correlation_id_var, get_logger

logger = get_logger(__name__)

# Header names for correlation ID propagation
CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Extract or generate a correlation ID for each request.

    The ID is stored in ``correlation_id_var`` for the duration of the
    request, so every log line carries it, and echoed in the response headers.
    Unexpected exceptions become a 500 ``{"error": ...}`` response here, so
    those responses carry the header as well.
    """

    def __init__(
        self,
        app: Any,
        header_name: str = CORRELATION_ID_HEADER,
        generator: Callable[[], str] = generate_correlation_id,
    ) -> None:
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = (
            request.headers.get(self.header_name)
            or request.headers.get(REQUEST_ID_HEADER)
            or self.generator()
        )

        token = correlation_id_var.set(correlation_id)
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                logger.exception(
                    "Unhandled error",
                    extra={"path": request.url.path, "method": request.method},
                )
                response = JSONResponse(
                    status_code=500,
                    content={"error": str(e) or DEFAULT_ERROR_MESSAGE},
                )
            response.headers[self.header_name] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)
