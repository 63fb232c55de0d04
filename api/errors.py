"""
Centralized translation of exceptions into HTTP error responses.

Status codes come from a single table keyed by exception type and resolved
along the exception's MRO, so subclasses inherit the status of their base.
"""

from http import HTTPStatus
from typing import Callable, Dict, Optional, Type

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse
from catalog.exceptions import (
    MediaStoreError, NotFoundError, UnexpectedError, ValidationError
)

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"

ERROR_STATUS_CODES: Dict[Type[BaseException], int] = {
    NotFoundError: HTTPStatus.NOT_FOUND,
    ValidationError: HTTPStatus.BAD_REQUEST,
    RequestValidationError: HTTPStatus.BAD_REQUEST,
    MediaStoreError: HTTPStatus.INTERNAL_SERVER_ERROR,
    UnexpectedError: HTTPStatus.INTERNAL_SERVER_ERROR,
}


def _describe_request_errors(exc: RequestValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        details.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "Invalid request parameters: " + "; ".join(details)


MESSAGE_FORMATTERS: Dict[Type[BaseException], Callable[[BaseException], str]] = {
    RequestValidationError: _describe_request_errors,
}


def _lookup(table: Dict[Type[BaseException], object], exc: BaseException) -> Optional[object]:
    for cls in type(exc).__mro__:
        if cls in table:
            return table[cls]
    return None


def resolve_status(exc: BaseException) -> int:
    """HTTP status for ``exc``; unknown exceptions are 500."""
    status_code = _lookup(ERROR_STATUS_CODES, exc)
    return int(status_code) if status_code is not None else int(HTTPStatus.INTERNAL_SERVER_ERROR)


def resolve_message(exc: BaseException, status_code: int) -> str:
    """Client-facing message; server errors never expose their details."""
    if status_code >= 500:
        return GENERIC_ERROR_MESSAGE
    formatter = _lookup(MESSAGE_FORMATTERS, exc)
    if formatter is not None:
        return formatter(exc)
    return getattr(exc, "message", None) or str(exc)


def build_error_response(
    status_code: int, message: str, headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    body = ErrorResponse(
        status=status_code,
        error=HTTPStatus(status_code).phrase,
        message=message,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


async def handle_error(request: Request, exc: Exception) -> JSONResponse:
    """Handle any exception through the status table."""
    status_code = resolve_status(exc)
    message = resolve_message(exc, status_code)

    if status_code >= 500:
        logger.error(
            "Unexpected error",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
    else:
        logger.warning(
            "Request failed",
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            error=message,
        )
    return build_error_response(status_code, message)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors (unknown route, wrong method) keep their own status."""
    logger.warning(
        "HTTP error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
    )
    message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
    return build_error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error handlers on ``app``."""
    for exc_type in ERROR_STATUS_CODES:
        app.add_exception_handler(exc_type, handle_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_error)
