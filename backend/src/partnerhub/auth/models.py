"""Authentication models for user accounts."""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from partnerhub.storage.models import Base


class UserStatus(IntEnum):
    """Account status."""
    DISABLED = 0
    ENABLED = 1


class User(Base):
    """User account.

    Usernames are unique (enforced by index). Rows are never physically
    deleted; accounts are disabled through ``status`` instead.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)

    # Identity
    username = Column(String(20), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)  # md5(salt + password), hex
    union_id = Column(String(255), nullable=True)
    open_id = Column(String(255), nullable=True)

    # Profile
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    sex = Column(Integer, nullable=True)
    avatar = Column(String(1024), nullable=True)
    profile = Column(String(512), nullable=True)
    tags = Column(Text, nullable=True)  # JSON list of tag names

    # Status
    status = Column(Integer, default=UserStatus.ENABLED.value, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, status={self.status})>"

    @property
    def tag_list(self) -> list[str]:
        """Get parsed tags."""
        if self.tags:
            return json.loads(self.tags)
        return []

    @tag_list.setter
    def tag_list(self, value: list[str]):
        """Set tags."""
        self.tags = serialize_tags(value)


def serialize_tags(tags: list[str]) -> str:
    """Serialize tag names the way they are stored in ``users.tags``."""
    return json.dumps(tags, ensure_ascii=False)


@dataclass(frozen=True)
class CallerContext:
    """Identity of the authenticated caller, passed explicitly into services."""
    user_id: int
    username: str
    is_admin: bool = False


# Pydantic models for API

class SafeUser(BaseModel):
    """Sanitized user view - everything except the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    union_id: str | None = None
    open_id: str | None = None
    phone: str | None = None
    email: str | None = None
    sex: int | None = None
    avatar: str | None = None
    profile: str | None = None
    tags: list[str] = Field(default_factory=list)
    status: int
    is_admin: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login_at: datetime | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return json.loads(v) if v else []
        return v


class UserUpdate(BaseModel):
    """Profile patch. Fields left as None are not touched."""

    model_config = ConfigDict(frozen=True)

    id: int
    phone: str | None = None
    email: str | None = None
    sex: int | None = None
    avatar: str | None = None
    profile: str | None = None
    tags: list[str] | None = None

    def changed_fields(self) -> dict:
        """Columns to write, with tags serialized for storage."""
        values = self.model_dump(exclude={"id"}, exclude_none=True)
        if "tags" in values:
            values["tags"] = serialize_tags(values["tags"])
        return values


class LoginResult(BaseModel):
    """Login response payload."""
    id: int
    username: str
    token: str
