"""Преобразование доменных ошибок в HTTP-ответы"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import (
    ConflictError, DuplicateVersionError, NotFoundError, OfferStoreError,
    PreconditionRequiredError, UnauthorizedError, ValidationError
)
from app.domains.offers.schemas import ErrorResponse

logger = logging.getLogger(__name__)

STATUS_CODES = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PreconditionRequiredError, status.HTTP_412_PRECONDITION_FAILED),
    (ConflictError, status.HTTP_409_CONFLICT),
]

RESOLUTION_OPTIONS = [
    {"action": "overwrite", "description": "Overwrite with your changes (requires fresh ETag)"},
    {"action": "create_version", "description": "Save your changes as a new version"},
    {"action": "view_changes", "description": "View the current version and merge manually"},
]


def _status_code(exc: OfferStoreError) -> int:
    for error_class, code in STATUS_CODES:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(status_code: int, body: ErrorResponse, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


async def offer_store_error_handler(request: Request, exc: OfferStoreError) -> JSONResponse:
    status_code = _status_code(exc)
    body = ErrorResponse(error=exc.code, message=exc.message)
    headers = None

    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, ConflictError) and not isinstance(exc, DuplicateVersionError):
        body.conflict_details = exc.details()
        body.resolution_options = RESOLUTION_OPTIONS
        if exc.current is not None:
            headers = {"ETag": exc.current.etag}
        logger.info(f"{request.method} {request.url.path}: conflict ({exc.message})")
    elif status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code} {exc.message}")

    return _error_response(status_code, body, headers)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(error=ValidationError.code, message=message),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path}: unhandled error")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(error="internal_error", message="Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OfferStoreError, offer_store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
