"""ASGI middleware and exception handlers for the intake API."""

from __future__ import annotations

import time
import traceback
import uuid

from fastapi import FastAPI
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from claim_pipeline.core.errors import (
    ClaimProcessingError,
    DeserializationError,
    PersistenceError,
    PolicyNotFoundError,
    PublishError,
)

REQUEST_ID_HEADER = "X-Request-ID"

# Most specific first; the base class catches everything else.
_STATUS_BY_ERROR: tuple[tuple[type[ClaimProcessingError], int], ...] = (
    (PolicyNotFoundError, 404),
    (DeserializationError, 400),
    (PublishError, 503),
    (PersistenceError, 500),
    (ClaimProcessingError, 500),
)


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status and duration under a request id."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        start = time.time()

        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
            elapsed_ms = (time.time() - start) * 1000
            logger.info(
                "{method} {path} → {status} ({ms:.0f}ms)",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                ms=elapsed_ms,
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


# ---------------------------------------------------------------------------
# Exception handling
# ---------------------------------------------------------------------------


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Catch unhandled exceptions and return a structured 500 response."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled exception on {method} {path}: {err}\n{tb}",
                method=request.method,
                path=request.url.path,
                err=exc,
                tb=traceback.format_exc(),
            )
            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal server error",
                    "error": str(exc),
                },
            )


def status_for(exc: ClaimProcessingError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def claim_processing_error_handler(
    request: Request, exc: ClaimProcessingError
) -> JSONResponse:
    """Render a :class:`ClaimProcessingError` with its code and claim number."""
    status_code = status_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "{code} on {method} {path}: {err}",
        code=exc.error_code,
        method=request.method,
        path=request.url.path,
        err=exc,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "errorCode": exc.error_code,
            "claimNumber": exc.claim_number,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClaimProcessingError, claim_processing_error_handler)
