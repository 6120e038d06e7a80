"""Team service for managing teams and their members."""

from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from partnerhub.auth.local import sanitize, validate_page
from partnerhub.auth.models import CallerContext
from partnerhub.errors import (
    AuthError,
    ConflictError,
    ErrorCode,
    InternalError,
    LimitExceededError,
    NotFoundError,
    PartnerHubError,
    ValidationError,
)
from partnerhub.logging_config import get_logger
from partnerhub.storage.db import Database, db
from partnerhub.storage.repo import (
    FIRST_PAGE,
    MAX_PAGE_SIZE,
    MembershipRepository,
    Page,
    TeamRepository,
    UserRepository,
    build_page,
)
from partnerhub.teams.models import (
    SafeTeam,
    Team,
    TeamCreate,
    TeamQuery,
    TeamQueryView,
    TeamStatus,
    TeamUpdate,
)

logger = get_logger(__name__)

MIN_TEAM_MEMBERS = 2
MAX_TEAM_MEMBERS = 20
MAX_OWNED_TEAMS = 5


def _naive_utc(value: datetime | None) -> datetime | None:
    """Store and compare datetimes as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def validate_max_num(max_num: int | None) -> int:
    if max_num is None or not MIN_TEAM_MEMBERS <= max_num <= MAX_TEAM_MEMBERS:
        raise ValidationError(
            f"max_num must be between {MIN_TEAM_MEMBERS} and {MAX_TEAM_MEMBERS}"
        )
    return max_num


def validate_expire_time(expire_time: datetime | None, now: datetime) -> datetime | None:
    expire_time = _naive_utc(expire_time)
    if expire_time is not None and expire_time <= now:
        raise ValidationError("expire_time must be in the future")
    return expire_time


def validate_status(status: int | None) -> TeamStatus:
    try:
        return TeamStatus(status)
    except ValueError as e:
        raise ValidationError(f"Unknown team status: {status}") from e


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def get_safe_team(team: Team) -> SafeTeam:
    """Project a team row to the view without the password."""
    return SafeTeam.model_validate(team)


class TeamService:
    """Service for team lifecycle and membership."""

    def __init__(self, database: Database | None = None):
        self.db = database or db
        self.logger = get_logger(__name__)

    def _load_team(self, teams: TeamRepository, team_id: int) -> Team:
        team = teams.get_by_id(team_id)
        if not team:
            raise NotFoundError("Team not found")
        return team

    def create_team(self, values: TeamCreate, caller: CallerContext) -> int:
        """Create a team led by the caller, who also becomes its first member.

        Args:
            values: Team values
            caller: Authenticated caller

        Returns:
            New team ID

        Raises:
            ValidationError: max_num out of range, expire_time not in the future,
                or SECRET without a password
            LimitExceededError: Caller already leads MAX_OWNED_TEAMS teams
            InternalError: Insert failed
        """
        now = datetime.utcnow()
        max_num = validate_max_num(values.max_num)
        expire_time = validate_expire_time(values.expire_time, now)
        status = validate_status(values.status)
        if status == TeamStatus.SECRET and is_blank(values.password):
            raise ValidationError("A secret team needs a password")

        try:
            with self.db.session() as session:
                # Lock the owner row so concurrent creations count one at a time
                owner = UserRepository(session).get_by_id(caller.user_id, lock=True)
                if not owner:
                    raise NotFoundError(code=ErrorCode.ACCOUNT_NOT_FOUND)

                teams = TeamRepository(session)
                if teams.count_owned_by(caller.user_id) >= MAX_OWNED_TEAMS:
                    raise LimitExceededError(f"A user can lead at most {MAX_OWNED_TEAMS} teams")

                team = teams.create(
                    name=values.name,
                    description=values.description,
                    max_num=max_num,
                    expire_time=expire_time,
                    status=status.value,
                    password=values.password if status == TeamStatus.SECRET else None,
                    user_id=caller.user_id,
                )
                MembershipRepository(session).add(caller.user_id, team.id)
                team_id = team.id
        except PartnerHubError:
            raise
        except SQLAlchemyError as e:
            self.logger.error("team_create_failed", owner_id=caller.user_id, error=str(e))
            raise InternalError() from e

        self.logger.info("team_created", team_id=team_id, owner_id=caller.user_id, name=values.name)
        return team_id

    def delete_team(self, team_id: int, caller: CallerContext) -> bool:
        """Disband a team the caller leads, together with its membership rows.

        Not found and not owner are reported the same way.
        """
        with self.db.session() as session:
            MembershipRepository(session).remove_all_for_team(team_id)
            deleted = TeamRepository(session).delete_owned(team_id, caller.user_id)
            if not deleted:
                # Rolls back the membership removal as well
                raise InternalError()

        self.logger.info("team_deleted", team_id=team_id, owner_id=caller.user_id)
        return True

    def update_team(self, patch: TeamUpdate, caller: CallerContext) -> bool:
        """Apply the supplied fields to a team the caller leads.

        A team stops having a password as soon as it is no longer SECRET.
        """
        with self.db.session() as session:
            teams = TeamRepository(session)
            team = self._load_team(teams, patch.id)
            if team.user_id != caller.user_id:
                raise AuthError()

            values = patch.model_dump(exclude={"id"}, exclude_none=True)
            if "max_num" in values:
                validate_max_num(values["max_num"])
            if "expire_time" in values:
                values["expire_time"] = validate_expire_time(values["expire_time"], datetime.utcnow())

            current_status = TeamStatus(team.status)
            new_status = validate_status(values.get("status", current_status))
            if new_status == TeamStatus.SECRET:
                entering_secret = current_status != TeamStatus.SECRET
                if "password" in values and is_blank(values["password"]):
                    raise ValidationError("A secret team needs a password")
                if entering_secret and "password" not in values:
                    raise ValidationError("A secret team needs a password")
            else:
                values["password"] = None
            values["status"] = new_status.value

            matched = teams.update_fields(team.id, values)
            if not matched:
                raise InternalError()

        self.logger.info("team_updated", team_id=patch.id, fields=sorted(values))
        return True

    def get_team(self, team_id: int) -> SafeTeam:
        """Get a team without its password."""
        with self.db.session() as session:
            return get_safe_team(self._load_team(TeamRepository(session), team_id))

    def page_teams(self, query: TeamQuery, caller: CallerContext) -> Page[TeamQueryView]:
        """Search teams visible to the caller, one page at a time.

        Expired teams are never listed; teams without an expire time always are.
        Only administrators may list PRIVATE teams.
        """
        status = validate_status(query.status if query.status is not None else TeamStatus.PUBLIC)
        if status == TeamStatus.PRIVATE and not caller.is_admin:
            raise AuthError("Only administrators can list private teams")
        page, page_size = validate_page(query.page, query.page_size)

        now = datetime.utcnow()
        conditions = [
            Team.status == status.value,
            or_(Team.expire_time > now, Team.expire_time.is_(None)),
        ]
        if query.ids:
            conditions.append(Team.id.in_(query.ids))
        if query.search_text:
            conditions.append(or_(
                Team.name.contains(query.search_text, autoescape=True),
                Team.description.contains(query.search_text, autoescape=True),
            ))
        if query.name:
            conditions.append(Team.name.contains(query.name, autoescape=True))
        if query.description:
            conditions.append(Team.description.contains(query.description, autoescape=True))
        if query.max_num is not None and query.max_num > 0:
            conditions.append(Team.max_num <= query.max_num)
        if query.user_id is not None:
            conditions.append(Team.user_id == query.user_id)

        with self.db.session() as session:
            rows, total = TeamRepository(session).query_page(conditions, page, page_size)
            users = UserRepository(session)
            memberships = MembershipRepository(session)

            records = []
            for team in rows:
                view = TeamQueryView.model_validate(team)
                creator = users.get_by_id(team.user_id)
                if creator:
                    view.create_user = sanitize(creator)
                view.has_join_num = memberships.count_for_team(team.id)
                view.has_join = memberships.exists(team.user_id, team.id)
                records.append(view)

        return build_page(records, total, page, page_size)

    def list_teams(self, query: TeamQuery, caller: CallerContext) -> list[TeamQueryView]:
        """Same search as page_teams, returning every match."""
        query = query.model_copy(update={"page": FIRST_PAGE, "page_size": MAX_PAGE_SIZE})
        return self.page_teams(query, caller).records

    # ==================== MEMBERSHIP ====================

    def join_team(self, team_id: int, password: str | None, caller: CallerContext) -> bool:
        """Add the caller to a team.

        Raises:
            NotFoundError: No such team
            ValidationError: Team expired
            AuthError: Team is private, or secret and the password is wrong
            ConflictError: Caller already a member
            LimitExceededError: Team full
        """
        try:
            with self.db.session() as session:
                team = self._load_team(TeamRepository(session), team_id)
                if team.expire_time is not None and team.expire_time <= datetime.utcnow():
                    raise ValidationError("Team has expired")

                status = TeamStatus(team.status)
                if status == TeamStatus.PRIVATE:
                    raise AuthError("Private teams cannot be joined directly")
                if status == TeamStatus.SECRET and password != team.password:
                    raise AuthError("Wrong team password", code=ErrorCode.PASSWORD_ERROR)

                memberships = MembershipRepository(session)
                if memberships.exists(caller.user_id, team_id):
                    raise ConflictError(code=ErrorCode.ALREADY_JOINED)
                if memberships.count_for_team(team_id) >= team.max_num:
                    raise LimitExceededError("Team is full")

                memberships.add(caller.user_id, team_id)
        except IntegrityError as e:
            raise ConflictError(code=ErrorCode.ALREADY_JOINED) from e

        self.logger.info("team_joined", team_id=team_id, user_id=caller.user_id)
        return True

    def exit_team(self, team_id: int, caller: CallerContext) -> bool:
        """Remove the caller from a team.

        The last member leaving disbands the team. A leaving owner hands
        leadership to the earliest-joined member still under the ownership cap.

        Raises:
            NotFoundError: No such team, or caller not a member
            LimitExceededError: Owner leaving and no member can take over
        """
        with self.db.session() as session:
            teams = TeamRepository(session)
            team = self._load_team(teams, team_id)

            memberships = MembershipRepository(session)
            members = memberships.list_for_team(team_id)
            if not any(m.user_id == caller.user_id for m in members):
                raise NotFoundError("You are not a member of this team")

            if len(members) == 1:
                memberships.remove_all_for_team(team_id)
                teams.delete(team_id)
                self.logger.info("team_disbanded", team_id=team_id, user_id=caller.user_id)
                return True

            if team.user_id == caller.user_id:
                successor = next(
                    (
                        m for m in members
                        if m.user_id != caller.user_id
                        and teams.count_owned_by(m.user_id) < MAX_OWNED_TEAMS
                    ),
                    None,
                )
                if successor is None:
                    raise LimitExceededError(
                        f"Every other member already leads {MAX_OWNED_TEAMS} teams"
                    )
                teams.update_fields(team_id, {"user_id": successor.user_id})
                self.logger.info(
                    "team_leader_changed",
                    team_id=team_id,
                    old_leader=caller.user_id,
                    new_leader=successor.user_id,
                )

            memberships.remove(caller.user_id, team_id)

        self.logger.info("team_exited", team_id=team_id, user_id=caller.user_id)
        return True

    def change_leader(self, caller: CallerContext, new_user_id: int, team_id: int) -> bool:
        """Hand leadership of a team to another of its members."""
        with self.db.session() as session:
            teams = TeamRepository(session)
            team = self._load_team(teams, team_id)
            if team.user_id != caller.user_id:
                raise AuthError("Only the team leader can change the leader")
            if new_user_id == caller.user_id:
                raise ValidationError("You already lead this team")
            if not MembershipRepository(session).exists(new_user_id, team_id):
                raise ValidationError("The new leader must be a member of the team")
            if teams.count_owned_by(new_user_id) >= MAX_OWNED_TEAMS:
                raise LimitExceededError(f"A user can lead at most {MAX_OWNED_TEAMS} teams")

            teams.update_fields(team_id, {"user_id": new_user_id})

        self.logger.info(
            "team_leader_changed",
            team_id=team_id,
            old_leader=caller.user_id,
            new_leader=new_user_id,
        )
        return True

    def kick_out(self, team_id: int, user_id: int, caller: CallerContext) -> bool:
        """Remove another member from a team the caller leads."""
        with self.db.session() as session:
            team = self._load_team(TeamRepository(session), team_id)
            if team.user_id != caller.user_id:
                raise AuthError("Only the team leader can remove members")
            if user_id == caller.user_id:
                raise ValidationError("The leader cannot remove themself; exit the team instead")

            removed = MembershipRepository(session).remove(user_id, team_id)
            if not removed:
                raise NotFoundError("User is not a member of this team")

        self.logger.info("team_member_removed", team_id=team_id, user_id=user_id, removed_by=caller.user_id)
        return True


# Singleton instance
team_service = TeamService()
