"""Error taxonomy and error responses for the PetitionHub API.

Every error reaches the client as ``{"error": <message>}`` with CORS and
no-store caching headers. Error responses are never written to the cache
store.

Taxonomy:
- ValidationError       -> 400
- NotFoundError         -> 404
- MethodNotAllowedError -> 405
- ConflictError         -> 409 (e.g. duplicate signature)
- UnknownError          -> 500, message sanitized
StoreUnavailableError lives in the cache package and never reaches here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from petitionhub.api.middleware.cors import CORSConfig, cors_headers, request_cors_headers
from petitionhub.api.responses import json_response

logger = logging.getLogger(__name__)

NO_STORE = "no-cache, no-store, must-revalidate"
GENERIC_ERROR_MESSAGE = "An unexpected error occurred"
MAX_MESSAGE_LENGTH = 200


class ErrorKind(str, Enum):
    """Error classes and their HTTP status codes."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self]


_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNKNOWN: 500,
}

_KIND_BY_STATUS = {
    400: ErrorKind.VALIDATION,
    404: ErrorKind.NOT_FOUND,
    405: ErrorKind.METHOD_NOT_ALLOWED,
    409: ErrorKind.CONFLICT,
}


class ErrorBody(BaseModel):
    """Error response body."""

    model_config = {"extra": "forbid"}

    error: str


class PetitionApiError(HTTPException):
    """Base exception for API errors with a known kind."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        super().__init__(status_code=status_code or self.kind.status_code, detail=message)


class ValidationError(PetitionApiError):
    """Client input malformed or missing (400)."""

    kind = ErrorKind.VALIDATION


class NotFoundError(PetitionApiError):
    """Resource not found (404)."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource_type: str, identifier: str | int | None = None):
        if identifier is None:
            message = f"{resource_type} not found"
        else:
            message = f"{resource_type} '{identifier}' not found"
        super().__init__(message)


class MethodNotAllowedError(PetitionApiError):
    """HTTP method not supported on this resource (405)."""

    kind = ErrorKind.METHOD_NOT_ALLOWED

    def __init__(self, method: str | None = None):
        super().__init__(f"Method {method} not allowed" if method else "Method not allowed")


class ConflictError(PetitionApiError):
    """Write conflicts with existing state (409)."""

    kind = ErrorKind.CONFLICT


class UnknownError(PetitionApiError):
    """Unexpected failure (500)."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE):
        super().__init__(message)


def sanitize_message(message: str) -> str:
    """Keep the first line of a message and bound its length."""
    lines = message.strip().splitlines()
    first = lines[0].strip() if lines else ""
    if len(first) > MAX_MESSAGE_LENGTH:
        first = first[: MAX_MESSAGE_LENGTH - 3].rstrip() + "..."
    return first or GENERIC_ERROR_MESSAGE


def classify(error: Any, status_default: int = 500) -> ErrorKind:
    """Map any error value onto the taxonomy."""
    if isinstance(error, PetitionApiError):
        return error.kind
    if isinstance(error, RequestValidationError):
        return ErrorKind.VALIDATION
    if isinstance(error, StarletteHTTPException):
        return _KIND_BY_STATUS.get(error.status_code, ErrorKind.UNKNOWN)
    if isinstance(error, BaseException):
        return ErrorKind.UNKNOWN
    return _KIND_BY_STATUS.get(status_default, ErrorKind.UNKNOWN)


def _is_error_status(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 400 <= value <= 599


class ErrorResponseBuilder:
    """Builds consistent, non-cacheable JSON error responses."""

    def __init__(self, cors: CORSConfig | None = None):
        self.cors = cors

    def resolve(self, error: Any, status_default: int = 500) -> tuple[int, str]:
        """Return the (status, client-safe message) for an error value."""
        if isinstance(error, PetitionApiError):
            return error.status_code, sanitize_message(error.message)

        if isinstance(error, RequestValidationError):
            return 400, _validation_message(error)

        if isinstance(error, StarletteHTTPException):
            return error.status_code, sanitize_message(str(error.detail))

        if isinstance(error, str):
            return status_default, sanitize_message(error)

        if isinstance(error, Mapping):
            status = error.get("status") or error.get("status_code")
            if not _is_error_status(status):
                status = status_default
            message = error.get("error") or error.get("message") or GENERIC_ERROR_MESSAGE
            return status, sanitize_message(str(message))

        # Native exceptions may carry SQL, paths or hostnames; keep them in the log
        return status_default, GENERIC_ERROR_MESSAGE

    def build(
        self,
        error: Any,
        status_default: int = 500,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        status_code, message = self.resolve(error, status_default)

        if status_code >= 500:
            if isinstance(error, BaseException):
                logger.error(f"Unhandled error: {error!r}", exc_info=error)
            else:
                logger.error(f"Error response {status_code}: {message}")
        elif classify(error, status_code) is ErrorKind.VALIDATION:
            logger.info(f"Rejected request: {message}")
        else:
            logger.debug(f"Error response {status_code}: {message}")

        response_headers = cors_headers(self.cors)
        if headers:
            response_headers.update(headers)
        response_headers["Cache-Control"] = NO_STORE

        return json_response(
            ErrorBody(error=message).model_dump(),
            status_code=status_code,
            headers=response_headers,
        )


def _validation_message(error: RequestValidationError) -> str:
    errors = error.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    text = first.get("msg", "Invalid value")
    return sanitize_message(f"{location}: {text}" if location else text)


def get_error_builder(request: Request) -> ErrorResponseBuilder:
    app = request.scope.get("app")
    builder = getattr(getattr(app, "state", None), "error_builder", None)
    return builder or ErrorResponseBuilder()


async def api_exception_handler(request: Request, exc: Exception) -> Response:
    """Exception handler for every error type the API raises."""
    headers = request_cors_headers(request)
    if isinstance(exc, StarletteHTTPException) and exc.headers:
        headers.update(exc.headers)
    return get_error_builder(request).build(exc, headers=headers)
