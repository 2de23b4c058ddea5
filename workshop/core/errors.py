"""
Standardized Error Handling for Workshop.

Policy rejections (login required, forbidden, throttled) are expected outcomes
with stable status codes. Environment failures surface as 500s.
All JSON errors share one structure.
"""

import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Models
# =============================================================================

class ErrorDetail(BaseModel):
    """Detail for a single error."""
    loc: list[str] | None = None
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str  # Error code (e.g., "permission_denied")
    message: str
    details: list[dict[str, Any]] | None = None
    request_id: str | None = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class WorkshopError(Exception):
    """Base exception for Workshop-specific errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "workshop_error",
        status_code: int = 500,
        details: list[dict] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class AuthenticationError(WorkshopError):
    """Authentication failed (bad credentials, missing session on an API call)."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            error_code="authentication_required",
            status_code=401,
        )


class LoginRequired(WorkshopError):
    """No session on a protected page. Answered with a redirect, not an error body."""

    def __init__(self, login_path: str = "/login"):
        self.login_path = login_path
        super().__init__(
            message="Login required",
            error_code="login_required",
            status_code=303,
        )


class AuthorizationError(WorkshopError):
    """Authorization failed (authenticated but not permitted)."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            message=message,
            error_code="permission_denied",
            status_code=403,
        )


class RateLimitError(WorkshopError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__(
            message="Too many requests. Please slow down.",
            error_code="rate_limit_exceeded",
            status_code=429,
            details=[{"retry_after": retry_after}],
        )


class TokenGenerationError(WorkshopError):
    """The secure random source is unavailable."""

    def __init__(self, message: str = "Secure random source unavailable"):
        super().__init__(
            message=message,
            error_code="token_generation_failed",
            status_code=500,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

def get_request_id(request: Request) -> Optional[str]:
    """Extract request ID from request (set by TimingMiddleware or the client)."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is not None:
        return str(request_id)
    return request.headers.get("X-Request-Id")


def error_body(request: Request, exc: WorkshopError) -> dict:
    return ErrorResponse(
        error=exc.error_code,
        message=exc.message,
        details=exc.details,
        request_id=get_request_id(request),
    ).model_dump()


async def workshop_error_handler(request: Request, exc: WorkshopError):
    """Handle Workshop-specific exceptions."""
    if isinstance(exc, LoginRequired):
        return RedirectResponse(url=exc.login_path, status_code=status.HTTP_303_SEE_OTHER)

    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}

    if exc.status_code >= 500:
        logger.error(
            "WorkshopError: %s - %s",
            exc.error_code,
            exc.message,
            extra={"error_code": exc.error_code, "path": request.url.path},
        )
    else:
        logger.info(
            "WorkshopError: %s - %s",
            exc.error_code,
            exc.message,
            extra={"error_code": exc.error_code, "path": request.url.path},
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle standard HTTP exceptions."""
    error_codes = {
        400: "bad_request",
        401: "authentication_required",
        403: "permission_denied",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        422: "validation_error",
        429: "rate_limit_exceeded",
        500: "internal_error",
        503: "service_unavailable",
    }

    error_code = error_codes.get(exc.status_code, "error")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": error_code,
            "message": str(exc.detail) if exc.detail else f"HTTP {exc.status_code}",
            "request_id": get_request_id(request),
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    details = []
    for error in exc.errors():
        details.append(ErrorDetail(
            loc=[str(part) for part in error.get("loc", [])],
            msg=error.get("msg", ""),
            type=error.get("type", ""),
        ).model_dump())

    logger.info(
        "Validation error on %s: %d issues",
        request.url.path,
        len(details),
    )

    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": details,
            "request_id": get_request_id(request),
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "Unhandled exception on %s: %s",
        request.url.path,
        str(exc),
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "request_id": get_request_id(request),
        },
    )


# =============================================================================
# Setup Function
# =============================================================================

def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Call during app initialization:
        setup_exception_handlers(app)
    """
    app.add_exception_handler(WorkshopError, workshop_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "WorkshopError",
    "ErrorResponse",
    "ErrorDetail",
    "AuthenticationError",
    "LoginRequired",
    "AuthorizationError",
    "RateLimitError",
    "TokenGenerationError",
    "setup_exception_handlers",
]
