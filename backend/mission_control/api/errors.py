"""Exception handlers: every error response carries a ``debug_id``.

The debug id is logged next to the full error, so a client report can be
matched to the server-side record without exposing internals in the body.
"""

import uuid

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from mission_control.core.exceptions import MissionControlError
from mission_control.middleware.correlation import get_correlation_id

logger = structlog.get_logger(__name__)

STORE_UNAVAILABLE_DETAIL = "Datastore unavailable"


def _error_response(request: Request, status_code: int, detail, log_event: str, **context) -> JSONResponse:
    debug_id = str(uuid.uuid4())
    log = logger.error if status_code >= 500 else logger.warning
    log(
        log_event,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        **context,
    )
    return JSONResponse(status_code=status_code, content={"detail": detail, "debug_id": debug_id})


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail, "http_exception", detail=exc.detail)


async def mission_control_exception_handler(request: Request, exc: MissionControlError) -> JSONResponse:
    """Domain errors: validation 422, not found 404, invalid state 409, store 503.

    Store failures get a generic detail; the driver message only goes to the log.
    """
    detail = str(exc) if exc.status_code < 500 else STORE_UNAVAILABLE_DETAIL
    return _error_response(
        request,
        exc.status_code,
        detail,
        "domain_exception",
        error_type=type(exc).__name__,
        error=str(exc),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        request,
        500,
        "Internal server error",
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(MissionControlError, mission_control_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
