"""Global error handlers: consistent JSON `{"detail": ...}` responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nexus.ledger.exceptions import (
    InsufficientFunds,
    InvalidAmount,
    LedgerError,
    LedgerStorageError,
    ReferralError,
    TaskNotFound,
    TaskStateError,
)

logger = structlog.get_logger()

# Most specific first; the first matching class decides the status code.
LEDGER_ERROR_STATUS: list[tuple[type[LedgerError], int]] = [
    (InsufficientFunds, 402),
    (InvalidAmount, 422),
    (TaskNotFound, 404),
    (TaskStateError, 409),
    (ReferralError, 400),
    (LedgerStorageError, 503),
]


def status_for(exc: LedgerError) -> int:
    for exc_type, status_code in LEDGER_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Map ledger failures to HTTP status codes."""
        status_code = status_for(exc)
        content: dict[str, object] = {"detail": str(exc)}
        if isinstance(exc, InsufficientFunds):
            content["required"] = exc.required
            content["available"] = exc.available
        logger.info(
            "ledger_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            status_code=status_code,
        )
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always returns JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
