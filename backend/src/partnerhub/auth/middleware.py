"""Authentication dependencies for FastAPI."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from partnerhub.auth.local import UserService
from partnerhub.auth.models import CallerContext
from partnerhub.errors import AuthError, ErrorCode, NotLoggedInError
from partnerhub.logging_config import get_logger

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def get_user_service(request: Request) -> UserService:
    """User service bound to the running app's database."""
    return request.app.state.user_service


def get_current_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    user_service: UserService = Depends(get_user_service),
) -> CallerContext | None:
    """Resolve the caller from the bearer token.

    Returns:
        Caller identity or None if the token is missing or invalid
    """
    if not credentials:
        return None

    caller = user_service.resolve_caller(credentials.credentials)
    if caller:
        request.state.caller = caller

    return caller


def require_auth(caller: CallerContext | None = Depends(get_current_caller)) -> CallerContext:
    """Require authentication.

    Raises:
        NotLoggedInError: No valid session token
    """
    if not caller:
        raise NotLoggedInError()
    return caller


def require_admin(caller: CallerContext = Depends(require_auth)) -> CallerContext:
    """Require admin privileges.

    Raises:
        AuthError: Caller is not an administrator
    """
    if not caller.is_admin:
        logger.warning("admin_access_denied", user_id=caller.user_id)
        raise AuthError("Admin access required", code=ErrorCode.FORBIDDEN_ERROR)
    return caller
