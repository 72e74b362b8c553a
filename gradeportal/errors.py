"""
Error taxonomy for the portal and the FastAPI handlers that map it to HTTP.

Services raise these exceptions; nothing below the route layer builds HTTP
responses. Every error body has the shape ``{"error": "<message>"}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class PortalError(Exception):
    status_code = 500
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PortalError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(PortalError):
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(PortalError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(PortalError):
    status_code = 404
    default_message = "Not found"


class ConflictError(PortalError):
    status_code = 409
    default_message = "Conflict"


class ConfigurationError(PortalError):
    status_code = 500
    default_message = "Server not configured"


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


async def _portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    headers = None
    if isinstance(exc, AuthenticationError):
        # RFC 7235
        headers = {"WWW-Authenticate": "Bearer"}
    return error_response(exc.status_code, exc.message, headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid field '{location}': {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request body"
    return error_response(400, message)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return error_response(500, INTERNAL_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, _portal_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
