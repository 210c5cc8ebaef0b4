"""Exception types and handlers for the Novel Hub API.

Every error leaving the JSON API is rendered as the failure envelope
``{"success": false, "message": ...}``.
"""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base API error."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        headers: dict[str, str] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.headers = headers
        super().__init__(message)


class ValidationError(APIError):
    """Malformed or out-of-range input."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class AuthError(APIError):
    """Bad credentials or missing/invalid session token."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, status_code=401)


class AuthzError(APIError):
    """Authenticated, but not permitted to act on the resource."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, status_code=401)


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class RateLimitError(APIError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            "Too many requests, please try again later",
            status_code=429,
            headers={"Retry-After": str(retry_after)},
        )


class UpstreamError(APIError):
    """External provider failure."""

    def __init__(self, message: str):
        super().__init__(message, status_code=500)


class ConfigError(APIError):
    """Required external provider configuration is missing."""

    def __init__(self, message: str):
        super().__init__(message, status_code=500)


class DatabaseUnavailableError(APIError):
    """Database is not connected (degraded mode)."""

    def __init__(self, message: str = "Database is not available"):
        super().__init__(message, status_code=503)


def failure_content(message: str, **extra: Any) -> dict[str, Any]:
    """Build the failure envelope."""
    return {"success": False, "message": message, **extra}


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=failure_content(exc.message),
        headers=exc.headers,
    )


def _first_error_message(errors: list[dict[str, Any]], skip: int) -> str:
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[skip:])
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return message


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI request validation errors as 400s."""
    # loc starts with the request part ("body", "query", ...)
    message = _first_error_message(list(exc.errors()), skip=1)
    return JSONResponse(status_code=400, content=failure_content(message))


async def model_validation_handler(
    request: Request, exc: PydanticValidationError
) -> JSONResponse:
    """Handle schema errors raised while parsing bodies by hand (form uploads)."""
    message = _first_error_message(list(exc.errors()), skip=0)
    return JSONResponse(status_code=400, content=failure_content(message))


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap framework HTTP errors (unknown routes, bad methods) in the envelope."""
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=failure_content(message),
        headers=getattr(exc, "headers", None),
    )


def generic_error_handler_factory(include_stack: bool):
    """Build the catch-all handler; stack traces only outside production."""

    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error", exc_info=exc)
        extra: dict[str, Any] = {}
        if include_stack:
            extra["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        return JSONResponse(
            status_code=500,
            content=failure_content("Internal Server Error", **extra),
        )

    return generic_error_handler


def register_exception_handlers(app: FastAPI, include_stack: bool = False) -> None:
    """Register all exception handlers."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PydanticValidationError, model_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, generic_error_handler_factory(include_stack))
