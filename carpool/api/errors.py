"""Maps core failure signals onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from carpool.domain import errors

logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY: list[tuple[type[errors.CarpoolError], int]] = [
    (errors.ValidationError, 422),
    (errors.NotFoundError, 404),
    (errors.AuthorizationError, 403),
    (errors.ConflictError, 409),
]


def status_for(exc: errors.CarpoolError) -> int:
    for category, status in STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 400


async def carpool_error_handler(request: Request, exc: errors.CarpoolError):
    status = status_for(exc)
    logger.info("%s %s -> %d %s", request.method, request.url.path, status, exc.code)
    return JSONResponse(
        status_code=status,
        content={"detail": exc.message, "code": exc.code},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "internal_error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(errors.CarpoolError, carpool_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
