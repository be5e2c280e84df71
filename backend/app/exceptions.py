import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    message: str
    error: str
    data: Any | None = None


class AppError(Exception):
    """Base application exception.

    ``data`` carries context the caller needs to correct the request, e.g.
    available/requested days on an insufficient balance.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.data = data
        super().__init__(self.message)


class LedgerInvariantError(AppError):
    """A balance mutation would break the ledger invariants.

    Availability is always checked before a deduction, so reaching this is an
    internal-consistency fault rather than a user error.
    """

    def __init__(self, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, data=data)


def _error_response(status_code: int, message: str, error: str, data: Any | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(ErrorResponse(message=message, error=error, data=data)),
    )


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, LedgerInvariantError):
        logger.error("Ledger invariant violated on %s %s: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message, type(exc).__name__, exc.data)


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation failed",
        "ValidationError",
        {"errors": jsonable_encoder(exc.errors())},
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        type(exc).__name__,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)
