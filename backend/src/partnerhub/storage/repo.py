"""Repository layer for data access.

Each repository wraps one table and works inside the caller's session;
committing is left to ``Database.session()``.
"""

import math
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from partnerhub.auth.models import User, serialize_tags
from partnerhub.logging_config import get_logger
from partnerhub.teams.models import Team, UserTeam

logger = get_logger(__name__)

T = TypeVar("T")

FIRST_PAGE = 1
MAX_PAGE_SIZE = 2_147_483_647


class Page(BaseModel, Generic[T]):
    """One page of results."""
    records: list[T]
    total: int
    current: int
    size: int
    pages: int


def fetch_page(session: Session, stmt: Select, page: int, page_size: int) -> tuple[list[Any], int]:
    """Run a select for one page and count the full result.

    Returns:
        (rows on the page, total row count)
    """
    total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = list(session.scalars(stmt.offset((page - 1) * page_size).limit(page_size)))
    return rows, total


def build_page(records: list[T], total: int, page: int, page_size: int) -> Page[T]:
    """Wrap records and counts into a Page."""
    return Page(
        records=records,
        total=total,
        current=page,
        size=page_size,
        pages=math.ceil(total / page_size) if page_size else 0,
    )


class UserRepository:
    """Repository for User entities."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, username: str, password_hash: str) -> User:
        """Insert a new user and assign its id."""
        user = User(username=username, password=password_hash)
        self.session.add(user)
        self.session.flush()
        return user

    def get_by_id(self, user_id: int, lock: bool = False) -> User | None:
        """Get user by ID, optionally locking the row for the transaction."""
        stmt = select(User).where(User.id == user_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).first()

    def get_by_username(self, username: str) -> User | None:
        """Get user by exact username."""
        return self.session.scalars(select(User).where(User.username == username)).first()

    def username_exists(self, username: str) -> bool:
        """Check whether a username is taken."""
        count = self.session.scalar(
            select(func.count()).select_from(User).where(User.username == username)
        )
        return bool(count)

    def update_fields(self, user_id: int, values: dict[str, Any]) -> int:
        """Write only the given columns. Returns the matched row count."""
        values = {**values, "updated_at": datetime.utcnow()}
        result = self.session.execute(
            update(User).where(User.id == user_id).values(**values)
        )
        return result.rowcount

    def search_by_tags(self, tag_names: list[str], page: int, page_size: int) -> tuple[list[User], int]:
        """Users carrying every one of the given tags."""
        stmt = select(User)
        for tag_name in tag_names:
            # Tags are stored as a JSON list, so match the quoted element
            quoted = serialize_tags([tag_name])[1:-1]
            stmt = stmt.where(User.tags.contains(quoted, autoescape=True))
        return fetch_page(self.session, stmt.order_by(User.id), page, page_size)

    def search_by_username(self, username: str, page: int, page_size: int) -> tuple[list[User], int]:
        """Users whose username contains the given text."""
        stmt = select(User).where(User.username.contains(username, autoescape=True)).order_by(User.id)
        return fetch_page(self.session, stmt, page, page_size)

    def list_all(self, page: int, page_size: int) -> tuple[list[User], int]:
        """All users, oldest first."""
        return fetch_page(self.session, select(User).order_by(User.id), page, page_size)


class TeamRepository:
    """Repository for Team entities."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, **values: Any) -> Team:
        """Insert a new team and assign its id."""
        team = Team(**values)
        self.session.add(team)
        self.session.flush()
        return team

    def get_by_id(self, team_id: int) -> Team | None:
        """Get team by ID."""
        return self.session.get(Team, team_id)

    def count_owned_by(self, user_id: int) -> int:
        """Number of teams the user currently leads."""
        return self.session.scalar(
            select(func.count()).select_from(Team).where(Team.user_id == user_id)
        ) or 0

    def update_fields(self, team_id: int, values: dict[str, Any]) -> int:
        """Write only the given columns. Returns the matched row count."""
        values = {**values, "updated_at": datetime.utcnow()}
        result = self.session.execute(
            update(Team).where(Team.id == team_id).values(**values)
        )
        return result.rowcount

    def delete_owned(self, team_id: int, owner_id: int) -> int:
        """Delete a team only if it is led by ``owner_id``. Returns deleted row count."""
        result = self.session.execute(
            delete(Team).where(Team.id == team_id, Team.user_id == owner_id)
        )
        return result.rowcount

    def delete(self, team_id: int) -> int:
        """Delete a team unconditionally. Returns deleted row count."""
        result = self.session.execute(delete(Team).where(Team.id == team_id))
        return result.rowcount

    def query_page(self, conditions: list[Any], page: int, page_size: int) -> tuple[list[Team], int]:
        """Teams matching every condition, oldest first."""
        stmt = select(Team).where(*conditions).order_by(Team.id)
        return fetch_page(self.session, stmt, page, page_size)


class MembershipRepository:
    """Repository for UserTeam membership rows."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, user_id: int, team_id: int) -> UserTeam:
        """Insert a membership row."""
        membership = UserTeam(user_id=user_id, team_id=team_id, join_time=datetime.utcnow())
        self.session.add(membership)
        self.session.flush()
        return membership

    def exists(self, user_id: int, team_id: int) -> bool:
        """Check whether the user belongs to the team."""
        count = self.session.scalar(
            select(func.count()).select_from(UserTeam).where(
                UserTeam.user_id == user_id,
                UserTeam.team_id == team_id,
            )
        )
        return bool(count)

    def count_for_team(self, team_id: int) -> int:
        """Number of members in the team."""
        return self.session.scalar(
            select(func.count()).select_from(UserTeam).where(UserTeam.team_id == team_id)
        ) or 0

    def list_for_team(self, team_id: int) -> list[UserTeam]:
        """Members of the team, earliest joined first."""
        return list(self.session.scalars(
            select(UserTeam)
            .where(UserTeam.team_id == team_id)
            .order_by(UserTeam.join_time, UserTeam.id)
        ))

    def remove(self, user_id: int, team_id: int) -> int:
        """Delete one membership row. Returns deleted row count."""
        result = self.session.execute(
            delete(UserTeam).where(UserTeam.user_id == user_id, UserTeam.team_id == team_id)
        )
        return result.rowcount

    def remove_all_for_team(self, team_id: int) -> int:
        """Delete every membership row of the team. Returns deleted row count."""
        result = self.session.execute(delete(UserTeam).where(UserTeam.team_id == team_id))
        logger.debug("team_memberships_removed", team_id=team_id, count=result.rowcount)
        return result.rowcount
