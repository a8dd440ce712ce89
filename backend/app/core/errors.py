"""Error kinds raised by the ledger and rendered by the API.

Each error carries a human-readable message and the HTTP status it maps to.
``NotifierFailure`` exists for logging only and is never raised to a caller.
"""

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class LedgerError(Exception):
    """Base class for errors reported to the caller as a rejected request."""

    kind = "LedgerError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(LedgerError):
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFound(LedgerError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStock(LedgerError):
    kind = "InsufficientStock"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, spool_id: int | None = None):
        super().__init__(message)
        self.spool_id = spool_id


class InvalidInput(LedgerError):
    kind = "InvalidInput"
    status_code = status.HTTP_400_BAD_REQUEST


class TransientStoreFailure(LedgerError):
    """Lock timeout or lost connection. Safe to retry with the same input."""

    kind = "TransientStoreFailure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class NotifierFailure(Exception):
    """A low-stock alert could not be delivered. Logged, never surfaced."""


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthorized):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, TransientStoreFailure):
        headers = {"Retry-After": "1"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as ``InvalidInput``."""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content={"error": InvalidInput.kind, "detail": message},
    )
