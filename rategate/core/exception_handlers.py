"""Error responses with a consistent JSON envelope.

Design:
- AppError → 500 envelope carrying the error's code (limiter errors are
  always server-side faults); used by the default engine-error response
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing

The rate limiter runs as HTTP middleware, outside FastAPI's exception
middleware, so engine failures are rendered directly rather than raised.
Over-quota requests never produce an error; the middleware answers them
with the configured denial response.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from rategate.core.errors import AppError
from rategate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def app_error_response(exc: AppError, *, status_code: int = 500) -> JSONResponse:
    """Render a limiter error with the shared JSON error envelope.

    Only ``code`` and ``message`` are exposed; ``details`` stay in the logs so
    store addresses and exception types never reach clients.

    Args:
        exc: AppError instance (or subclass).
        status_code: HTTP status of the response.

    Returns:
        JSONResponse with ``{"error": {"code", "message", "request_id"}}``.
    """
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "request_id": get_request_id(),
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure and returns a generic message without implementation
    details or stack traces.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register the fallback exception handler with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(Exception)(general_exception_handler)
