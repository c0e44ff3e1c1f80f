"""Domain error taxonomy and the FastAPI handlers that render it.

Every failure the auth core can report is an ``AuthError`` subclass with an
``ErrorKind``; the HTTP layer switches on the kind (via ``status_code``)
rather than parsing messages.
"""
import enum
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_VERIFIED = "not_verified"
    ALREADY_VERIFIED = "already_verified"
    INVALID_CODE = "invalid_code"
    CODE_EXPIRED = "code_expired"
    INVALID_OTP = "invalid_otp"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    ALREADY_ENABLED = "already_enabled"
    NOT_ENABLED = "not_enabled"
    SETUP_NOT_INITIATED = "setup_not_initiated"
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    DELIVERY_FAILURE = "delivery_failure"
    INTERNAL = "internal"


class AuthError(Exception):
    """Base class for every error the auth core reports to its caller."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConflictError(AuthError):
    kind = ErrorKind.CONFLICT
    status_code = status.HTTP_409_CONFLICT
    default_message = "User with this email already exists"


class NotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class NotVerifiedError(AuthError):
    kind = ErrorKind.NOT_VERIFIED
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Please verify your email before signing in"


class AlreadyVerifiedError(AuthError):
    kind = ErrorKind.ALREADY_VERIFIED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email is already verified"


class InvalidCodeError(AuthError):
    kind = ErrorKind.INVALID_CODE
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid verification code"


class CodeNotIssuedError(InvalidCodeError):
    """No code is on record, either never issued or already consumed."""

    default_message = "No verification code has been issued"


class CodeExpiredError(AuthError):
    kind = ErrorKind.CODE_EXPIRED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Verification code has expired"


class InvalidOtpError(AuthError):
    kind = ErrorKind.INVALID_OTP
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid two-factor authentication code"


class TokenExpiredError(AuthError):
    kind = ErrorKind.TOKEN_EXPIRED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized: Token has expired"


class RefreshTokenExpiredError(TokenExpiredError):
    default_message = "Refresh token has expired, please sign in again"


class TokenInvalidError(AuthError):
    kind = ErrorKind.TOKEN_INVALID
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized: Invalid token"


class TwoFactorAlreadyEnabledError(AuthError):
    kind = ErrorKind.ALREADY_ENABLED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Two-factor authentication is already enabled"


class TwoFactorNotEnabledError(AuthError):
    kind = ErrorKind.NOT_ENABLED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Two-factor authentication is not enabled"


class TwoFactorSetupNotInitiatedError(AuthError):
    kind = ErrorKind.SETUP_NOT_INITIATED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Two-factor authentication setup has not been initiated"


class ValidationError(AuthError):
    kind = ErrorKind.VALIDATION
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed. Please check your input."


class PasswordReuseError(ValidationError):
    default_message = "New password must be different from the current password"


class ForbiddenError(AuthError):
    kind = ErrorKind.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied: invalid token format"


class RateLimitedError(AuthError):
    kind = ErrorKind.RATE_LIMITED
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests, please try again later"


class DeliveryError(AuthError):
    """The notifier could not hand a message to the mail server."""

    kind = ErrorKind.DELIVERY_FAILURE
    default_message = "Failed to send email, please try again later"


class ConfigurationError(RuntimeError):
    """Fatal misconfiguration detected at startup."""


def envelope(status_code: int, message: str, data: object | None = None, **extra) -> dict:
    """Build the ``{status, statusCode, message, data}`` response body."""

    if status_code < 400:
        outcome = "success"
    elif status_code < 500:
        outcome = "fail"
    else:
        outcome = "error"
    body: dict = {"status": outcome, "statusCode": status_code, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        # Never echo internal details back to the client
        logger.error(f"{exc.kind.value} on {request.url.path}: {exc.message}", exc_info=exc)
        message = AuthError.default_message if exc.kind is ErrorKind.INTERNAL else exc.default_message
    else:
        logger.info(f"{exc.kind.value} on {request.url.path}: {exc.message}")
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(exc.status_code, message, kind=exc.kind.value),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    validation_errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    logger.info(f"Validation error on {request.url.path}: {validation_errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=envelope(
            status.HTTP_400_BAD_REQUEST,
            ValidationError.default_message,
            kind=ErrorKind.VALIDATION.value,
            validationErrors=validation_errors,
        ),
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Database error on {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope(500, AuthError.default_message, kind=ErrorKind.INTERNAL.value),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error on {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope(500, AuthError.default_message, kind=ErrorKind.INTERNAL.value),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
