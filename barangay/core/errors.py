"""
Barangay Portal Errors
Exception hierarchy raised by services and the handlers that turn them
into `{ok: false, message}` JSON responses.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base class for errors that map to a specific HTTP status."""

    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PortalError):
    """Missing or malformed request data."""
    status_code = 400
    default_message = "Invalid request."


class InvalidStatusError(ValidationError):
    """Requested case status is not one of the known states."""
    default_message = "Invalid status"


class AuthenticationRequired(PortalError):
    status_code = 401
    default_message = "Not authenticated"


class PermissionDenied(PortalError):
    status_code = 403
    default_message = "Admin only."


class NotFoundError(PortalError):
    status_code = 404
    default_message = "Not found"


class UploadUnavailableError(PortalError):
    """The multipart parser is not installed; evidence uploads are disabled."""
    status_code = 501
    default_message = (
        "File upload disabled. Please ask the administrator to install "
        "python-multipart (pip install python-multipart)."
    )


class MaintenanceModeError(PortalError):
    status_code = 503
    default_message = "Service under maintenance. Please try again later."


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "message": message})


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid value")
    return f"{location}: {msg}" if location else msg


def setup_exception_handlers(app: FastAPI) -> None:
    """Register handlers so every error body has the same shape."""

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(400, _first_validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed."
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "message": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error.")
