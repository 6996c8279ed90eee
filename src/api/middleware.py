"""API middleware: CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and
conversion of ``MusicboardError`` subclasses into JSON ``ErrorResponse``
bodies with the status code each error class declares.

# ─── EXECUTION ORDER ──────────────────────────────────────────────────
#
#   Client → RequestLogging → CORS → route handler
#                                       │ raises MusicboardError
#                                       ▼
#                          musicboard_error_handler → JSON error body
#
# The error handler is registered with ``app.add_exception_handler`` so
# it runs inside the routing layer; RequestLoggingMiddleware therefore
# sees the final status code of the structured error response.
#
# RequestLoggingMiddleware also binds request_id, method and path into
# structlog contextvars before calling the route, so the error handler
# and every pipeline log line for the request carry the same request_id.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import MusicboardError
from src.utils.logging import bind_request_context, clear_request_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; restrict to the dashboard's domain in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    Each request gets a ``request_id`` (the caller's ``X-Request-ID`` when
    present, otherwise a fresh hex id).  It is bound into structlog's
    contextvars before the route runs, so the pipeline's own log lines for
    this request carry it too, and it is echoed back on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        bind_request_context(request_id, request.method, str(request.url.path))
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            # Runs on the error path too; an exception escaping the app is
            # logged as a 500 before it propagates to the server.
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                status=status_code,
                duration_ms=duration_ms,
            )
            clear_request_context()


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


async def musicboard_error_handler(request: Request, exc: MusicboardError) -> JSONResponse:
    """Render a ``MusicboardError`` as ``{success: false, error, detail}``.

    Stack traces and provider details are logged server-side only; the
    client sees the error class name and its message.
    """
    # 4xx: the caller sent a bad or unknown id, logged at warning.
    # 5xx: a backend or calculation failure, logged at error.
    log = _logger.warning if exc.status_code < 500 else _logger.error
    log(
        "application_error",
        error_type=type(exc).__name__,
        message=exc.message,
        provider=exc.provider_name,
        status=exc.status_code,
        path=str(request.url.path),
    )
    # Only the class name and message cross the wire; provider_name and
    # any chained cause stay in the log line above.
    body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def register_error_handlers(app: FastAPI) -> None:
    """Install the structured error handler for all application errors."""
    app.add_exception_handler(MusicboardError, musicboard_error_handler)
