from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ChoreCoinsError(Exception):
    """Base for every error the engine raises on purpose."""

    code = "ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(ChoreCoinsError):
    """Malformed input, rejected before any state change."""

    code = "VALIDATION_ERROR"


class PreconditionError(ChoreCoinsError):
    """A business rule refused the operation; nothing was mutated."""

    code = "PRECONDITION_FAILED"


class NotFoundError(ChoreCoinsError):
    code = "NOT_FOUND"


class ForbiddenError(ChoreCoinsError):
    """The caller lacks the household role the operation needs."""

    code = "FORBIDDEN"


class ConflictError(ChoreCoinsError):
    """Concurrent writers kept invalidating the entity version."""

    code = "CONFLICT"


_STATUS_BY_ERROR: dict[type[ChoreCoinsError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PreconditionError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
}


def _status_for(exc: ChoreCoinsError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def chorecoins_exception_handler(request: Request, exc: ChoreCoinsError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code == status.HTTP_409_CONFLICT:
        logger.info(f"{request.method} {request.url.path} refused: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "message": exc.message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChoreCoinsError, chorecoins_exception_handler)
