"""Team database models and value types."""

from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from partnerhub.auth.models import SafeUser
from partnerhub.storage.models import Base


class TeamStatus(IntEnum):
    """Team visibility."""
    PUBLIC = 0   # Listed, anyone can join
    PRIVATE = 1  # Listed to admins only, cannot be joined directly
    SECRET = 2   # Listed, joining requires the team password


class Team(Base):
    """Team led by the user who created it (or was handed leadership).

    ``password`` is set exactly when ``status`` is SECRET.
    """
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True)

    # Team info
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    max_num = Column(Integer, nullable=False)
    expire_time = Column(DateTime, nullable=True)  # NULL = never expires

    # Visibility
    status = Column(Integer, default=TeamStatus.PUBLIC.value, nullable=False)
    password = Column(String(255), nullable=True)

    # Owner (leader)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Team(id={self.id}, name={self.name}, owner={self.user_id})>"


class UserTeam(Base):
    """Membership record linking a user to a team."""
    __tablename__ = "user_team"
    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_user_team_user_id_team_id"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    join_time = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<UserTeam(team={self.team_id}, user={self.user_id})>"


# Value types

class TeamCreate(BaseModel):
    """Values for a new team."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    max_num: int | None = None
    expire_time: datetime | None = None
    status: int = TeamStatus.PUBLIC.value
    password: str | None = None


class TeamUpdate(BaseModel):
    """Team patch. Fields left as None are not touched."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str | None = None
    description: str | None = None
    max_num: int | None = None
    expire_time: datetime | None = None
    status: int | None = None
    password: str | None = None


class TeamQuery(BaseModel):
    """Filters for team listing. All supplied filters are AND'ed."""

    model_config = ConfigDict(frozen=True)

    ids: list[int] | None = None
    name: str | None = None
    description: str | None = None
    search_text: str | None = None
    max_num: int | None = None
    user_id: int | None = None
    status: int | None = None
    page: int | None = None
    page_size: int | None = None


class SafeTeam(BaseModel):
    """Team view without the password."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    max_num: int
    expire_time: datetime | None = None
    status: int
    user_id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TeamQueryView(SafeTeam):
    """Listed team enriched with creator profile and membership counts."""

    create_user: SafeUser | None = None
    has_join_num: int = 0
    has_join: bool = False
