"""API middleware: CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and automatic
conversion of ``DriveVectorError`` subclasses into JSON ``ErrorResponse``
bodies with the status code each error class declares.

# ─── MIDDLEWARE EXECUTION ORDER ────────────────────────────────────────
#
# Starlette middleware is a stack (last added, first executed):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)   # added 1st, inner
#     app.add_middleware(RequestLoggingMiddleware)  # added 2nd, outer
#
#   Request flow:
#     Client → RequestLogging → ErrorHandling → route handler
#
# So RequestLoggingMiddleware sees the *final* response status code.
# ``register_exception_handlers`` installs the same conversion as an
# app-level handler, which also covers errors raised by dependencies.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import DriveVectorError
from src.utils.logging import get_logger

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
        development; override with specific origins in production.
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


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


def error_response(request: Request, exc: DriveVectorError) -> JSONResponse:
    """Log *exc* server-side and return its sanitized JSON form."""
    log = _logger.warning if exc.status_code < 500 else _logger.error
    log(
        "application_error",
        error_type=type(exc).__name__,
        message=exc.message,
        provider=exc.provider_name,
        status=exc.status_code,
        path=str(request.url.path),
    )
    body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(by_alias=True))


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``DriveVectorError`` subclasses and return structured JSON errors.

    Stack traces are logged server-side only; the client sees the error
    class name and message.  Generic Python exceptions bubble up to
    FastAPI's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except DriveVectorError as exc:
            return error_response(request, exc)


async def _handle_drivevector_error(request: Request, exc: DriveVectorError) -> Response:
    return error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Map ``DriveVectorError`` to JSON responses at the application level."""
    app.add_exception_handler(DriveVectorError, _handle_drivevector_error)  # type: ignore[arg-type]
