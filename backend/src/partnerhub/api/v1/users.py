"""User account API endpoints."""

import re

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from partnerhub.api.rate_limit import LOGIN_RATE, REGISTER_RATE, limiter
from partnerhub.api.responses import BaseResponse, success
from partnerhub.auth.local import UserService
from partnerhub.auth.middleware import get_user_service, require_admin, require_auth
from partnerhub.auth.models import CallerContext, LoginResult, SafeUser, UserUpdate
from partnerhub.logging_config import get_logger
from partnerhub.storage.repo import FIRST_PAGE, MAX_PAGE_SIZE, Page

logger = get_logger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


# ==================== MODELS ====================

def validate_password_complexity(password: str) -> str:
    """Validate password meets security requirements."""
    if not re.search(r"[A-Za-z]", password):
        raise ValueError("Password must contain at least one letter")
    if not re.search(r"[0-9]", password):
        raise ValueError("Password must contain at least one digit")
    return password


class RequestModel(BaseModel):
    """Request bodies accept both snake_case and camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(RequestModel):
    """User registration request."""
    username: str = Field(..., min_length=4, max_length=20, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(..., min_length=8, max_length=100)
    check_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("password")
    @classmethod
    def check_password_complexity(cls, v):
        return validate_password_complexity(v)


class LoginRequest(RequestModel):
    """User login request. Unknown usernames are reported by the service, not here."""
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=100)


class UpdateUserRequest(RequestModel):
    """Profile update request."""
    id: int
    phone: str | None = Field(default=None, max_length=32)
    email: EmailStr | None = None
    sex: int | None = Field(default=None, ge=0, le=2)
    avatar: str | None = Field(default=None, max_length=1024)
    profile: str | None = Field(default=None, max_length=512)
    tags: list[str] | None = None


# ==================== ENDPOINTS ====================


@router.post("/register", response_model=BaseResponse[int])
@limiter.limit(REGISTER_RATE)
def register(
    request: Request,
    body: RegisterRequest,
    user_service: UserService = Depends(get_user_service),
):
    """Register a new account and return its ID."""
    user_id = user_service.register(body.username, body.password, body.check_password)
    return success(user_id)


@router.post("/login", response_model=BaseResponse[LoginResult])
@limiter.limit(LOGIN_RATE)
def login(
    request: Request,
    body: LoginRequest,
    user_service: UserService = Depends(get_user_service),
):
    """Log in and receive a session token."""
    user = user_service.login(body.username, body.password)
    token = user_service.create_access_token(user)
    return success(LoginResult(id=user.id, username=user.username, token=token))


@router.get("/current", response_model=BaseResponse[SafeUser])
def get_current_user(
    caller: CallerContext = Depends(require_auth),
    user_service: UserService = Depends(get_user_service),
):
    """Get the logged-in user's profile."""
    return success(user_service.get_user(caller.user_id))


@router.post("/logout", response_model=BaseResponse[None])
def logout(caller: CallerContext = Depends(require_auth)):
    """Log out. Tokens are stateless; the client discards its copy."""
    logger.info("user_logged_out", user_id=caller.user_id)
    return success()


@router.put("", response_model=BaseResponse[None])
def update_user(
    body: UpdateUserRequest,
    caller: CallerContext = Depends(require_auth),
    user_service: UserService = Depends(get_user_service),
):
    """Update profile fields. Users may only edit themselves unless admin."""
    user_service.update_user(UserUpdate(**body.model_dump()), caller)
    return success()


@router.post("/status/{status}", response_model=BaseResponse[None])
def set_account_status(
    status: int,
    id: int = Query(...),
    caller: CallerContext = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
):
    """Enable (1) or disable (0) an account. Admin only."""
    logger.info("user_status_requested", user_id=id, status=status, admin_id=caller.user_id)
    user_service.set_account_status(id, status)
    return success()


@router.get("/search/tags", response_model=BaseResponse[list[SafeUser]])
def search_users_by_tags(
    tag_name_list: list[str] | None = Query(default=None, alias="tagNameList"),
    page: int = Query(default=FIRST_PAGE, ge=1),
    page_size: int = Query(default=MAX_PAGE_SIZE, ge=1, alias="pageSize"),
    caller: CallerContext = Depends(require_auth),
    user_service: UserService = Depends(get_user_service),
):
    """Users carrying every listed tag."""
    return success(user_service.search_by_tags(tag_name_list, page, page_size).records)


@router.get("/search", response_model=BaseResponse[Page[SafeUser]])
def search_users_by_name(
    username: str = Query(default=""),
    page: int = Query(default=FIRST_PAGE, ge=1),
    page_size: int = Query(default=10, ge=1, le=100, alias="pageSize"),
    caller: CallerContext = Depends(require_auth),
    user_service: UserService = Depends(get_user_service),
):
    """Users whose username contains the given text."""
    return success(user_service.search_by_username(username, page, page_size))


@router.get("/recommend", response_model=BaseResponse[Page[SafeUser]])
def recommend_users(
    page: int = Query(default=FIRST_PAGE, ge=1),
    page_size: int = Query(default=10, ge=1, le=100, alias="pageSize"),
    caller: CallerContext = Depends(require_auth),
    user_service: UserService = Depends(get_user_service),
):
    """Browse all users."""
    return success(user_service.paginate(page, page_size))
