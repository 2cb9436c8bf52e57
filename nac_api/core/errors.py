"""
Service-layer exceptions and their HTTP rendering.

Services raise ServiceError subclasses; register_exception_handlers() maps them
to JSON responses with a stable error code:

    {"success": false, "detail": "<message>", "code": "<error_code>", ...extra}
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nac_api.config import settings
from nac_api.core.logging import get_logger

logger = get_logger(__name__)


class ServiceError(Exception):
    """Base class for service-layer errors mapped to HTTP responses."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "bad_request"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "bad_request"
    default_message = "Invalid request"


class InvalidCredentialsError(ServiceError):
    """Unknown identifier or wrong password; one message for both."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "invalid_credentials"
    default_message = "Invalid student ID or password"


class UnauthenticatedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "unauthenticated"
    default_message = "Not authenticated"


class InvalidTokenError(UnauthenticatedError):
    error_code = "invalid_token"
    default_message = "Invalid or expired token"


class RevokedTokenError(UnauthenticatedError):
    error_code = "revoked_token"
    default_message = "Refresh token has been revoked"


class UserBlockedError(UnauthenticatedError):
    error_code = "user_blocked"
    default_message = "Invalid refresh token"


class AccountBlockedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "account_blocked"
    default_message = "User is blocked"


class PolicyViolationError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "policy_violation"
    default_message = (
        "Randomized MAC addresses are not allowed. "
        "Disable private/random MAC for this network and try again."
    )


class DeviceLimitExceededError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "device_limit_exceeded"

    def __init__(self, limit: int) -> None:
        super().__init__(f"Device limit exceeded ({limit})", limit=limit)


class DeviceBlockedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "device_blocked"
    default_message = "Device is blocked"


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_message = "Not authorized to perform this action"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_message = "Resource not found"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"
    default_message = "Resource already exists"


class InternalError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "internal_error"
    default_message = "Internal server error"


class UpstreamTimeoutError(InternalError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    error_code = "upstream_timeout"
    default_message = "Upstream operation timed out"


def error_response(
    status_code: int,
    code: str,
    message: str,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "detail": message, "code": code}
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for service errors, validation errors and unexpected failures."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "service_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )
        message = exc.message
        if exc.status_code >= 500 and settings.ENVIRONMENT != "development":
            message = InternalError.default_message
        headers = (
            {"WWW-Authenticate": "Bearer"}
            if exc.status_code == status.HTTP_401_UNAUTHORIZED
            else None
        )
        return error_response(exc.status_code, exc.error_code, message, exc.extra, headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        logger.warning(
            "request_validation_error",
            path=request.url.path,
            method=request.method,
            errors=errors,
        )
        message = errors[0]["message"] if errors else BadRequestError.default_message
        return error_response(
            status.HTTP_400_BAD_REQUEST, BadRequestError.error_code, message, {"errors": errors}
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = {
            status.HTTP_401_UNAUTHORIZED: UnauthenticatedError.error_code,
            status.HTTP_403_FORBIDDEN: ForbiddenError.error_code,
            status.HTTP_404_NOT_FOUND: NotFoundError.error_code,
        }.get(exc.status_code, "http_error")
        return error_response(
            exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            exc_info=exc,
        )
        message = (
            f"{InternalError.default_message}: {exc}"
            if settings.ENVIRONMENT == "development"
            else InternalError.default_message
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, InternalError.error_code, message
        )
