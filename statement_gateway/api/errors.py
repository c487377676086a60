"""Mapping of domain exceptions to HTTP error responses"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from statement_gateway.domain.exceptions import (
    DomainException,
    ExtractionError,
    NotFoundError,
    PersistenceError,
    ReconciliationError,
    UpstreamServiceError,
    ValidationError,
)

# Intake constraint -> status
VALIDATION_STATUS = {
    "file_size": 413,
    "file_type": 415,
}

ERROR_STATUS = [
    (NotFoundError, 404),
    (ReconciliationError, 409),
    (ExtractionError, 500),
    (UpstreamServiceError, 502),
    (PersistenceError, 500),
]

OUTCOMES = [
    (ValidationError, "validation_error"),
    (ExtractionError, "extraction_error"),
    (UpstreamServiceError, "upstream_error"),
    (PersistenceError, "persistence_error"),
]


def status_for(exc: DomainException) -> int:
    if isinstance(exc, ValidationError):
        return VALIDATION_STATUS.get(exc.constraint, 400)
    for exc_type, status_code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def outcome_for(exc: Exception) -> str:
    """Metric label for a failed upload"""
    for exc_type, outcome in OUTCOMES:
        if isinstance(exc, exc_type):
            return outcome
    return "error"


def error_response(exc: DomainException) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"error": str(exc)})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(status_code=422, content={"error": f"Invalid request - {problems}"})
