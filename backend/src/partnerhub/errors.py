"""Error taxonomy for PartnerHub services.

Every failure a service reports is a PartnerHubError subclass carrying a
numeric code, a user-facing message and the HTTP status the API layer
answers with. Nothing is retried: an error ends the current request.
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes returned in the response envelope."""

    SUCCESS = 0

    PARAMS_ERROR = 40000
    PASSWORD_ERROR = 40001
    CHECK_NOT_PASS = 40002
    PARAMS_NULL_ERROR = 40003
    ACCOUNT_EXISTS = 40004
    ALREADY_LIMITED = 40005
    ALREADY_JOINED = 40006
    NOT_LOGIN_ERROR = 40100
    NO_AUTH_ERROR = 40101
    ACCOUNT_LOCKED = 40102
    FORBIDDEN_ERROR = 40300
    NOT_FOUND_ERROR = 40400
    ACCOUNT_NOT_FOUND = 40401
    TOO_MANY_REQUESTS = 42900

    SYSTEM_ERROR = 50000
    OPERATION_ERROR = 50001
    REGISTER_ERROR = 50002


DEFAULT_MESSAGES = {
    ErrorCode.SUCCESS: "ok",
    ErrorCode.PARAMS_ERROR: "Invalid request parameters",
    ErrorCode.PASSWORD_ERROR: "Wrong password",
    ErrorCode.CHECK_NOT_PASS: "Parameter check failed",
    ErrorCode.PARAMS_NULL_ERROR: "Request parameters are empty",
    ErrorCode.ACCOUNT_EXISTS: "Account already exists",
    ErrorCode.ALREADY_LIMITED: "Limit reached",
    ErrorCode.ALREADY_JOINED: "Already a member of this team",
    ErrorCode.NOT_LOGIN_ERROR: "Not logged in",
    ErrorCode.NO_AUTH_ERROR: "Permission denied",
    ErrorCode.ACCOUNT_LOCKED: "Account is locked",
    ErrorCode.FORBIDDEN_ERROR: "Access forbidden",
    ErrorCode.NOT_FOUND_ERROR: "Requested data does not exist",
    ErrorCode.ACCOUNT_NOT_FOUND: "Account does not exist",
    ErrorCode.TOO_MANY_REQUESTS: "Too many requests. Please try again later.",
    ErrorCode.SYSTEM_ERROR: "Internal system error",
    ErrorCode.OPERATION_ERROR: "Operation failed",
    ErrorCode.REGISTER_ERROR: "Registration failed",
}


class PartnerHubError(Exception):
    """Base exception for all PartnerHub errors."""

    default_code = ErrorCode.SYSTEM_ERROR
    http_status = 500

    def __init__(
        self,
        message: str | None = None,
        code: ErrorCode | None = None,
        http_status: int | None = None,
    ):
        self.code = code or self.default_code
        self.message = message or DEFAULT_MESSAGES[self.code]
        if http_status is not None:
            self.http_status = http_status
        super().__init__(self.message)

    def to_response(self, data: Any = None) -> dict[str, Any]:
        """Convert to the standard {code, message, data} envelope."""
        return {"code": int(self.code), "message": self.message, "data": data}


# ─── Client errors (400-level) ──────────────────────────────────

class ValidationError(PartnerHubError):
    """Malformed or out-of-range input."""
    default_code = ErrorCode.PARAMS_ERROR
    http_status = 400


class ConflictError(PartnerHubError):
    """Write would duplicate an existing record."""
    default_code = ErrorCode.ACCOUNT_EXISTS
    http_status = 409


class NotFoundError(PartnerHubError):
    """Requested record does not exist."""
    default_code = ErrorCode.NOT_FOUND_ERROR
    http_status = 404


class AuthError(PartnerHubError):
    """Bad credentials or insufficient permission."""
    default_code = ErrorCode.NO_AUTH_ERROR
    http_status = 403


class NotLoggedInError(AuthError):
    """Request carries no valid session token."""
    default_code = ErrorCode.NOT_LOGIN_ERROR
    http_status = 401


class LockedError(PartnerHubError):
    """Account is disabled."""
    default_code = ErrorCode.ACCOUNT_LOCKED
    http_status = 403


class LimitExceededError(PartnerHubError):
    """A per-user or per-team cap has been reached."""
    default_code = ErrorCode.ALREADY_LIMITED
    http_status = 400


# ─── Server errors (500-level) ──────────────────────────────────

class InternalError(PartnerHubError):
    """A persistence write did not take effect."""
    default_code = ErrorCode.OPERATION_ERROR
    http_status = 500
