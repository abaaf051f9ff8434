"""HTTP mapping for tipping domain errors."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..errors import (
    NotFoundError,
    TipLocked,
    TippingError,
    TippingForbidden,
    UnknownJob,
    UpstreamUnavailable,
    ValidationFailed,
)
from ..logging import logger

_STATUS_BY_ERROR: tuple[tuple[type[TippingError], int], ...] = (
    (TippingForbidden, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnknownJob, status.HTTP_404_NOT_FOUND),
    (TipLocked, status.HTTP_409_CONFLICT),
    (ValidationFailed, 422),
    (UpstreamUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: TippingError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def tipping_error_handler(request: Request, exc: TippingError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "request_rejected",
        path=request.url.path,
        status_code=status_code,
        code=exc.code,
        detail=exc.message,
    )
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, TipLocked):
        body["scope"] = exc.scope
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TippingError, tipping_error_handler)
