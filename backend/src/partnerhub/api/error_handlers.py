"""Global exception handlers.

Every error leaves the API as a {code, message, data} envelope:
    - PartnerHubError → its own code and HTTP status
    - RequestValidationError → PARAMS_ERROR with field-level details
    - RateLimitExceeded → TOO_MANY_REQUESTS
    - routing errors (unknown path, wrong method) → code picked by HTTP status
    - anything else → SYSTEM_ERROR, without internal details
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from partnerhub.errors import DEFAULT_MESSAGES, ErrorCode, PartnerHubError
from partnerhub.logging_config import get_logger

logger = get_logger(__name__)


def _envelope(code: ErrorCode, message: str | None = None, data=None) -> dict:
    return {"code": int(code), "message": message or DEFAULT_MESSAGES[code], "data": data}


HTTP_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: ErrorCode.NOT_LOGIN_ERROR,
    status.HTTP_403_FORBIDDEN: ErrorCode.NO_AUTH_ERROR,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND_ERROR,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.TOO_MANY_REQUESTS,
}


def code_for_status(http_status: int) -> ErrorCode:
    """Envelope code for a framework-raised HTTP error."""
    if http_status in HTTP_STATUS_CODES:
        return HTTP_STATUS_CODES[http_status]
    if http_status >= 500:
        return ErrorCode.SYSTEM_ERROR
    return ErrorCode.PARAMS_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(PartnerHubError)
    async def partnerhub_error_handler(request: Request, exc: PartnerHubError):
        log = logger.error if exc.http_status >= 500 else logger.info
        log("request_failed", path=request.url.path, code=int(exc.code), error=exc.message)
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(loc) for loc in e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ]
        logger.info("request_validation_failed", path=request.url.path, errors=details)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_envelope(ErrorCode.PARAMS_ERROR, data=details),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("rate_limited", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=_envelope(ErrorCode.TOO_MANY_REQUESTS),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = code_for_status(exc.status_code)
        logger.info("http_error", path=request.url.path, status=exc.status_code, code=int(code))
        message = exc.detail if isinstance(exc.detail, str) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(code, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_exception", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope(ErrorCode.SYSTEM_ERROR),
        )
