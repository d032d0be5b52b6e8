"""Maps domain errors to HTTP responses."""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from practice_crm.domain.errors import (
    ConflictError,
    CRMError,
    InvalidInputError,
    NotFoundError,
)
from practice_crm.infrastructure.logging.logger import logger

_STATUS_BY_ERROR = (
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
)


def status_for(exc: CRMError) -> int:
    """
    HTTP status for a domain error.

    Args:
        exc: Domain error

    Returns:
        400, 404 or 409 for caller errors; 500 for storage and notification failures
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the {success: false, error} body."""
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def crm_error_handler(request: Request, exc: CRMError) -> JSONResponse:
    """Handle domain errors raised by use cases."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return error_response(status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 with the first problem."""
    errors = exc.errors()
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Keep the error body shape for HTTPException as well."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    """
    Register exception handlers on the application.

    Args:
        app: FastAPI application
    """
    app.add_exception_handler(CRMError, crm_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
