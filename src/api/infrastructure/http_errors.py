"""Translation of engine errors into HTTP responses.

Routes catch ``MorphError`` and raise the exception returned here, so every
error body has the same ``{"code", "message"}`` shape. Statement text and
driver messages carried by ``StatementExecutionError`` are never exposed.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from shared_kernel.exceptions import (
    ConcurrencyConflictError,
    DataValidationError,
    DuplicateNameError,
    LockAcquisitionTimeoutError,
    MorphError,
    NotFoundError,
    StatementExecutionError,
    TenantIsolationError,
    ValidationError,
)

_STATUS_BY_TYPE: tuple[tuple[type[MorphError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (DataValidationError, status.HTTP_400_BAD_REQUEST),
    (DuplicateNameError, status.HTTP_409_CONFLICT),
    (ConcurrencyConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (LockAcquisitionTimeoutError, status.HTTP_423_LOCKED),
    (TenantIsolationError, status.HTTP_403_FORBIDDEN),
    (StatementExecutionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_code_for(error: MorphError) -> int:
    """Return the HTTP status code for an engine error."""
    for error_type, status_code in _STATUS_BY_TYPE:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_detail(error: MorphError) -> dict:
    """Build the response body detail for an engine error."""
    if isinstance(error, StatementExecutionError):
        detail: dict = {
            "code": error.code,
            "message": "The database rejected the operation.",
        }
    else:
        detail = {"code": error.code, "message": error.message}

    if isinstance(error, DataValidationError):
        detail["errors"] = [
            {"field": e.field, "message": e.message, "code": e.code}
            for e in error.errors
        ]
    return detail


def to_http_exception(error: MorphError) -> HTTPException:
    """Map an engine error to an HTTPException."""
    return HTTPException(
        status_code=status_code_for(error),
        detail=error_detail(error),
    )
