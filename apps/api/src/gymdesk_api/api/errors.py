"""Translate domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from gymdesk_api.services.errors import (
    ConflictError,
    GymDeskError,
    InvalidMembershipError,
    InvalidStateError,
    NotFoundError,
)

_STATUS_BY_ERROR: tuple[tuple[type[GymDeskError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidMembershipError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def status_for_error(exc: GymDeskError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def handle_domain_error(request: Request, exc: GymDeskError) -> JSONResponse:
    status_code = status_for_error(exc)
    logger.info(
        "Domain error returned to client",
        path=request.url.path,
        error_type=exc.__class__.__name__,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.__class__.__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GymDeskError, handle_domain_error)


__all__ = ["handle_domain_error", "register_error_handlers", "status_for_error"]
