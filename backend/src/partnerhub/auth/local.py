"""Local authentication service (username/password)."""

import re
from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from partnerhub.auth.models import CallerContext, SafeUser, User, UserStatus, UserUpdate
from partnerhub.errors import (
    AuthError,
    ConflictError,
    ErrorCode,
    InternalError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from partnerhub.logging_config import get_logger
from partnerhub.settings import settings
from partnerhub.storage.db import Database, db
from partnerhub.storage.repo import FIRST_PAGE, MAX_PAGE_SIZE, Page, UserRepository, build_page

logger = get_logger(__name__)

# Stored hashes are plain hex md5 digests of salt + password
pwd_context = CryptContext(schemes=["hex_md5"])

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{4,20}$")


def validate_username(username: str | None) -> str:
    """Check a username is 4-20 letters, digits or underscores."""
    if not username or not USERNAME_PATTERN.match(username):
        raise ValidationError("Username must be 4-20 letters, digits or underscores")
    return username


def validate_page(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Check pagination arguments are present and positive."""
    if page is None or page_size is None:
        raise ValidationError("page and page_size are required")
    if page < 1 or page_size < 1:
        raise ValidationError("page and page_size must be positive")
    return page, page_size


def sanitize(user: User) -> SafeUser:
    """Project a user row to the sanitized view (no password hash)."""
    return SafeUser.model_validate(user)


class UserService:
    """Identity service: accounts, credentials and session tokens."""

    def __init__(self, database: Database | None = None):
        self.db = database or db
        self.logger = get_logger(__name__)

    # ==================== PASSWORD ====================

    def hash_password(self, password: str) -> str:
        """Hash a password with the process-wide salt."""
        return pwd_context.hash(settings.password_salt + password)

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify a password against a stored hash."""
        return pwd_context.verify(settings.password_salt + password, hashed)

    # ==================== REGISTRATION / LOGIN ====================

    def register(self, username: str, password: str, check_password: str) -> int:
        """Register a new account.

        Args:
            username: Desired username
            password: Plain password
            check_password: Password confirmation

        Returns:
            New user ID

        Raises:
            ValidationError: Malformed username or passwords differ
            ConflictError: Username already taken
            InternalError: Insert failed
        """
        validate_username(username)
        if password != check_password:
            raise ValidationError("Passwords do not match", code=ErrorCode.PASSWORD_ERROR)

        try:
            with self.db.session() as session:
                users = UserRepository(session)
                if users.username_exists(username):
                    raise ConflictError()

                user = users.create(username, self.hash_password(password))
                user_id = user.id
        except IntegrityError as e:
            # Lost a race against a concurrent registration of the same name
            raise ConflictError() from e
        except SQLAlchemyError as e:
            self.logger.error("user_register_failed", username=username, error=str(e))
            raise InternalError(code=ErrorCode.REGISTER_ERROR) from e

        self.logger.info("user_registered", user_id=user_id, username=username)
        return user_id

    def login(self, username: str, password: str) -> SafeUser:
        """Check credentials and return the sanitized account.

        Checks run in order: account exists, password matches, account enabled.

        Raises:
            NotFoundError: No such username
            AuthError: Wrong password
            LockedError: Account disabled
        """
        with self.db.session() as session:
            user = UserRepository(session).get_by_username(username)
            if not user:
                raise NotFoundError(code=ErrorCode.ACCOUNT_NOT_FOUND)

            if not self.verify_password(password, user.password):
                self.logger.info("login_failed", username=username)
                raise AuthError(code=ErrorCode.PASSWORD_ERROR)

            if user.status == UserStatus.DISABLED:
                raise LockedError()

            user.last_login_at = datetime.utcnow()
            session.flush()
            safe_user = sanitize(user)

        self.logger.info("user_logged_in", user_id=safe_user.id)
        return safe_user

    # ==================== JWT TOKENS ====================

    def create_access_token(
        self,
        user: SafeUser,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create JWT access token carrying user id and username."""
        if expires_delta is None:
            expires_delta = timedelta(seconds=settings.jwt_ttl_seconds)

        now = datetime.utcnow()
        payload = {
            "sub": str(user.id),
            "username": user.username,
            "exp": now + expires_delta,
            "iat": now,
        }
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """Verify and decode JWT token.

        Returns:
            Token payload or None if invalid or expired
        """
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except JWTError as e:
            self.logger.debug("token_verification_failed", error=str(e))
            return None

    def resolve_caller(self, token: str) -> CallerContext | None:
        """Turn a bearer token into the caller's identity.

        Returns None for bad tokens and for missing or disabled accounts.
        """
        payload = self.verify_token(token)
        if not payload or not payload.get("sub"):
            return None

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            return None

        with self.db.session() as session:
            user = UserRepository(session).get_by_id(user_id)
            if not user or user.status == UserStatus.DISABLED:
                return None
            return CallerContext(user_id=user.id, username=user.username, is_admin=bool(user.is_admin))

    # ==================== USER MANAGEMENT ====================

    def get_user(self, user_id: int) -> SafeUser:
        """Get the sanitized user by ID."""
        with self.db.session() as session:
            user = UserRepository(session).get_by_id(user_id)
            if not user:
                raise NotFoundError(code=ErrorCode.ACCOUNT_NOT_FOUND)
            return sanitize(user)

    def is_admin(self, user_id: int) -> bool:
        """Check whether the user is an administrator."""
        with self.db.session() as session:
            user = UserRepository(session).get_by_id(user_id)
            return bool(user and user.is_admin)

    def set_account_status(self, user_id: int, status: int) -> None:
        """Enable or disable an account. Setting the current status again is a no-op."""
        try:
            status = UserStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown account status: {status}") from e

        with self.db.session() as session:
            matched = UserRepository(session).update_fields(user_id, {"status": status.value})
            if not matched:
                raise InternalError()

        self.logger.info("user_status_changed", user_id=user_id, status=status.name)

    def set_admin(self, user_id: int, is_admin: bool) -> None:
        """Grant or revoke administrator rights."""
        with self.db.session() as session:
            matched = UserRepository(session).update_fields(user_id, {"is_admin": is_admin})
            if not matched:
                raise InternalError()

        self.logger.info("user_admin_changed", user_id=user_id, is_admin=is_admin)

    def update_user(self, patch: UserUpdate, caller: CallerContext) -> None:
        """Update profile fields. Users edit themselves; admins edit anyone."""
        if caller.user_id != patch.id and not caller.is_admin:
            raise AuthError()

        values = patch.changed_fields()
        if not values:
            raise ValidationError("No fields to update", code=ErrorCode.PARAMS_NULL_ERROR)

        with self.db.session() as session:
            matched = UserRepository(session).update_fields(patch.id, values)
            if not matched:
                raise InternalError()

        self.logger.info("user_updated", user_id=patch.id, fields=sorted(values))

    # ==================== SEARCH ====================

    def search_by_tags(
        self,
        tag_names: list[str] | None,
        page: int = FIRST_PAGE,
        page_size: int = MAX_PAGE_SIZE,
    ) -> Page[SafeUser]:
        """Users carrying all of the given tags."""
        tag_names = [t for t in (tag_names or []) if t and t.strip()]
        if not tag_names:
            raise ValidationError("tagNameList must not be empty", code=ErrorCode.PARAMS_NULL_ERROR)
        page, page_size = validate_page(page, page_size)

        with self.db.session() as session:
            users, total = UserRepository(session).search_by_tags(tag_names, page, page_size)
            return build_page([sanitize(u) for u in users], total, page, page_size)

    def search_by_username(self, username: str | None, page: int, page_size: int) -> Page[SafeUser]:
        """Users whose username contains the given text."""
        if not username:
            raise ValidationError("username must not be empty", code=ErrorCode.PARAMS_NULL_ERROR)
        page, page_size = validate_page(page, page_size)

        with self.db.session() as session:
            users, total = UserRepository(session).search_by_username(username, page, page_size)
            return build_page([sanitize(u) for u in users], total, page, page_size)

    def paginate(self, page: int, page_size: int) -> Page[SafeUser]:
        """All users, one page at a time."""
        page, page_size = validate_page(page, page_size)

        with self.db.session() as session:
            users, total = UserRepository(session).list_all(page, page_size)
            return build_page([sanitize(u) for u in users], total, page, page_size)


# Singleton instance
user_service = UserService()
