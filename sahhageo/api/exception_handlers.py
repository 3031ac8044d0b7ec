"""Global exception handlers for structured JSON error responses."""

from __future__ import annotations

import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sahhageo.sdk.exceptions import AuthenticationError, NotFoundError, SahhaError
from sahhageo.services.errors import (
    PatternNotFoundError,
    SahhaGeoError,
    UnknownResourceError,
)

logger = logging.getLogger("sahhageo.errors")


def _error_body(status_code: int, detail) -> dict:
    return {"error": True, "status_code": status_code, "detail": detail}


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Return structured JSON for all HTTP exceptions (4xx/5xx)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.detail),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured JSON for request validation errors (422)."""
    return JSONResponse(status_code=422, content=_error_body(422, exc.errors()))


async def pattern_exception_handler(
    request: Request, exc: SahhaGeoError
) -> JSONResponse:
    """Unknown use cases and resources are 404; scoring failures are 502."""
    if isinstance(exc, (PatternNotFoundError, UnknownResourceError)):
        status_code = 404
    else:
        status_code = 502
        logger.warning("Pattern error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content=_error_body(status_code, str(exc)))


async def sahha_exception_handler(request: Request, exc: SahhaError) -> JSONResponse:
    """Upstream Sahha failures.

    A missing profile passes through as 404; everything else, including
    credential problems on our side, is reported as a bad gateway.
    """
    logger.warning(
        "Sahha upstream error on %s: %s",
        request.url.path,
        exc,
        extra={"upstream_status": exc.status_code},
    )
    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=404, content=_error_body(404, exc.detail))
    detail = "Upstream authentication failed" if isinstance(exc, AuthenticationError) else exc.detail
    return JSONResponse(status_code=502, content=_error_body(502, detail))


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Logs the full traceback server-side but returns a generic 500 response
    with no internal details leaked.
    """
    logger.error(
        "Unhandled exception on %s %s:\n%s",
        request.method,
        request.url.path,
        traceback.format_exc(),
    )
    return JSONResponse(status_code=500, content=_error_body(500, "Internal server error"))
