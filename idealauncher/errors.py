# Error taxonomy shared by the API handlers and the HTTP client
# Server side: exception handlers translate failures into JSON error bodies
# Client side: classification drives the retry policy

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorType(str, Enum):
    NETWORK = "NETWORK"
    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    NOT_FOUND = "NOT_FOUND"
    SERVER = "SERVER"
    AI_SERVICE = "AI_SERVICE"
    DATABASE = "DATABASE"
    CONFIGURATION = "CONFIGURATION"
    UNKNOWN = "UNKNOWN"


# Failures that will not change on a second attempt
NON_RETRYABLE = {
    ErrorType.AUTHENTICATION,
    ErrorType.AUTHORIZATION,
    ErrorType.VALIDATION,
    ErrorType.NOT_FOUND,
}


class APIError(Exception):
    """An error carrying an HTTP status and a taxonomy class."""

    def __init__(self, message: str, status_code: int = 500,
                 error_type: ErrorType = ErrorType.UNKNOWN,
                 details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details

    def to_dict(self) -> dict:
        return {
            "status": "error",
            "message": self.message,
            "type": self.error_type.value,
            "details": self.details,
        }


class NotFoundError(APIError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, 404, ErrorType.NOT_FOUND)


class ConfigurationError(APIError):
    """A required credential or setting is missing."""

    def __init__(self, message: str):
        super().__init__(message, 500, ErrorType.CONFIGURATION)


class UpstreamError(APIError):
    """The LLM or a third-party API failed."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message, status_code, ErrorType.AI_SERVICE)


def error_type_for_status(status_code: int) -> ErrorType:
    if status_code == 401:
        return ErrorType.AUTHENTICATION
    if status_code == 403:
        return ErrorType.AUTHORIZATION
    if status_code == 404:
        return ErrorType.NOT_FOUND
    if status_code in (408, 429, 502, 503, 504) or status_code == 0:
        return ErrorType.NETWORK
    if 400 <= status_code < 500:
        return ErrorType.VALIDATION
    if status_code >= 500:
        return ErrorType.SERVER
    return ErrorType.UNKNOWN


def classify_error(error: BaseException) -> ErrorType:
    """Map any exception onto the error taxonomy."""
    if isinstance(error, APIError):
        return error.error_type
    if isinstance(error, (ValidationError, RequestValidationError)):
        return ErrorType.VALIDATION
    if isinstance(error, HTTPException):
        return error_type_for_status(error.status_code)
    if isinstance(error, (TimeoutError, ConnectionError)):
        return ErrorType.NETWORK

    message = str(error).lower()
    if "network" in message or "timeout" in message or "connection" in message:
        return ErrorType.NETWORK
    if "unauthorized" in message or "401" in message:
        return ErrorType.AUTHENTICATION
    if "forbidden" in message or "403" in message:
        return ErrorType.AUTHORIZATION
    if "not found" in message or "404" in message:
        return ErrorType.NOT_FOUND
    if "gemini" in message or "model" in message:
        return ErrorType.AI_SERVICE
    if "firestore" in message or "database" in message:
        return ErrorType.DATABASE
    return ErrorType.UNKNOWN


def is_retryable(error: BaseException) -> bool:
    return classify_error(error) not in NON_RETRYABLE


def get_error_message(error: BaseException) -> str:
    """User-facing message for a failure."""
    error_type = classify_error(error)
    messages = {
        ErrorType.NETWORK: "Network connection failed. Please check your connection and try again.",
        ErrorType.VALIDATION: "Please check your input and try again.",
        ErrorType.AUTHENTICATION: "Please sign in to continue.",
        ErrorType.AUTHORIZATION: "You don't have permission to perform this action.",
        ErrorType.NOT_FOUND: "The requested resource was not found.",
        ErrorType.AI_SERVICE: "AI service is temporarily unavailable. Please try again in a moment.",
        ErrorType.DATABASE: "Database error occurred. Please try again.",
        ErrorType.SERVER: "Server error occurred. Please try again later.",
        ErrorType.CONFIGURATION: "This feature is not configured on the server.",
    }
    if isinstance(error, APIError) and error.message:
        return error.message
    return messages.get(error_type, str(error) or "An unexpected error occurred.")


async def with_retry(fn: Callable[[], Awaitable[T]], retries: int = 3,
                     delay: float = 1.0, backoff_multiplier: float = 2.0,
                     max_delay: float = 30.0) -> T:
    """
    Run an async callable, retrying transient failures with exponential backoff.

    Authentication, authorization, validation and not-found failures are raised
    on the first attempt. After ``retries`` retries the last error is raised.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=delay, exp_base=backoff_multiplier, max=max_delay),
        retry=retry_if_exception(is_retryable),
        reraise=True,
    ):
        with attempt:
            return await fn()


# --- FastAPI boundary ---

def _validation_details(exc) -> list:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


async def api_error_handler(request: Request, exc: APIError):
    if exc.status_code >= 500:
        logger.error(f"API error on {request.url.path}: {exc.message}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def http_exception_handler(request: Request, exc: HTTPException):
    error_type = error_type_for_status(exc.status_code)
    return JSONResponse({
        "status": "error",
        "message": exc.detail,
        "type": error_type.value,
        "details": None,
    }, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({
        "status": "error",
        "message": "Validation error",
        "type": ErrorType.VALIDATION.value,
        "details": _validation_details(exc),
    }, status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse({
        "status": "error",
        "message": "Internal server error",
        "type": classify_error(exc).value,
        "details": None,
    }, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
