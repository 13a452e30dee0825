"""Structured error responses."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from ..errors import InspectrError, ReplayValidationError
from .correlation import get_correlation_id

log = structlog.get_logger()


async def inspectr_error_handler(request: Request, exc: InspectrError) -> JSONResponse:
    status_code = exc.status_code or 500
    correlation_id = get_correlation_id()
    log.warning(
        "http.exception",
        status_code=status_code,
        error_type=exc.__class__.__name__,
        detail=exc.message,
        path=request.url.path,
    )
    content = {
        "error": exc.message,
        "type": exc.__class__.__name__,
        "correlation_id": correlation_id,
        "path": str(request.url.path),
    }
    if isinstance(exc, ReplayValidationError):
        content["detail"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    correlation_id = get_correlation_id()
    log.error(
        "unhandled.exception",
        error=str(exc),
        error_type=exc.__class__.__name__,
        path=request.url.path,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "type": "InternalServerError",
            "correlation_id": correlation_id,
            "path": str(request.url.path),
        },
    )


def install_error_handlers(app: FastAPI):
    app.add_exception_handler(InspectrError, inspectr_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
