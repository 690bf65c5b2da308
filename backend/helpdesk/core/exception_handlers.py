"""
FastAPI exception handlers for custom exceptions.

WHY: Handlers turn the exception hierarchy into one JSON error shape
``{error, kind, message, status_code, details}`` so every failure, including
ones raised by FastAPI itself, looks the same to clients.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpdesk.core.exceptions import AppException

logger = logging.getLogger(__name__)

_HTTP_STATUS_KINDS = {
    400: "validation",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "validation",
    409: "conflict",
}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom AppException and its subclasses.

    Server-side failures are logged; client errors are not, they are the
    normal outcome of bad input.
    """
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Returns field-level messages so callers can correct their input.
    """
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
        )

    return JSONResponse(
        status_code=400,
        content={
            "error": "ValidationError",
            "kind": "validation",
            "message": "Request validation failed",
            "status_code": 400,
            "details": {"errors": errors},
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handle Starlette HTTP exceptions.

    Some HTTP exceptions (404, 405) are raised by Starlette before our
    routes run.
    """
    status_code = exc.status_code
    kind = _HTTP_STATUS_KINDS.get(status_code, "internal")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": "HTTPException",
            "kind": kind,
            "message": exc.detail,
            "status_code": status_code,
            "details": None,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    The full traceback goes to the log; the client only gets a generic
    message with no internal identifiers.
    """
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "kind": "internal",
            "message": "An unexpected error occurred",
            "status_code": 500,
            "details": None,
        },
    )
