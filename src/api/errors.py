"""Translation of commission domain errors into HTTP errors."""

from fastapi import HTTPException, status

from src.services.errors import (
    CommissionError,
    NoApplicableRuleError,
    NotFoundError,
    ScopeConflictError,
    ValidationError,
)

_STATUS_BY_ERROR = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ScopeConflictError: status.HTTP_409_CONFLICT,
    NoApplicableRuleError: status.HTTP_409_CONFLICT,
}


def to_http_exception(exc: CommissionError) -> HTTPException:
    """Map a domain error to an HTTPException with a structured detail."""
    detail = {"code": exc.code, "message": exc.message}
    if isinstance(exc, ValidationError):
        detail["errors"] = [e.to_dict() for e in exc.errors]

    return HTTPException(
        status_code=_STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST),
        detail=detail,
    )
