"""Team API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field

from partnerhub.api.responses import BaseResponse, success
from partnerhub.api.v1.users import RequestModel
from partnerhub.auth.middleware import require_auth
from partnerhub.auth.models import CallerContext
from partnerhub.logging_config import get_logger
from partnerhub.storage.repo import Page
from partnerhub.teams.models import SafeTeam, TeamCreate, TeamQuery, TeamQueryView, TeamStatus, TeamUpdate
from partnerhub.teams.service import TeamService

router = APIRouter(prefix="/team", tags=["team"])
logger = get_logger(__name__)


def get_team_service(request: Request) -> TeamService:
    """Team service bound to the running app's database."""
    return request.app.state.team_service


# ─── Request Models ──────────────────────────────────────────────────────────

class CreateTeamRequest(RequestModel):
    """Request to create a new team. Range checks happen in the service."""
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1024)
    max_num: int | None = None
    expire_time: datetime | None = None
    status: int = TeamStatus.PUBLIC.value
    password: str | None = Field(default=None, max_length=255)


class UpdateTeamRequest(RequestModel):
    """Request to update a team. Omitted fields are left unchanged."""
    id: int
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1024)
    max_num: int | None = None
    expire_time: datetime | None = None
    status: int | None = None
    password: str | None = Field(default=None, max_length=255)


class JoinTeamRequest(RequestModel):
    """Request to join a team."""
    team_id: int
    password: str | None = None


class ExitTeamRequest(RequestModel):
    """Request to leave a team."""
    team_id: int


class ChangeLeaderRequest(RequestModel):
    """Request to hand over team leadership."""
    team_id: int
    new_user_id: int


class KickOutRequest(RequestModel):
    """Request to remove a member."""
    team_id: int
    user_id: int


def team_query_params(
    ids: list[int] | None = Query(default=None),
    name: str | None = Query(default=None),
    description: str | None = Query(default=None),
    search_text: str | None = Query(default=None, alias="searchText"),
    max_num: int | None = Query(default=None, alias="maxNum"),
    user_id: int | None = Query(default=None, alias="userId"),
    status: int | None = Query(default=None),
    page: int | None = Query(default=None),
    page_size: int | None = Query(default=None, alias="pageSize"),
) -> TeamQuery:
    """Collect listing filters from the query string."""
    return TeamQuery(
        ids=ids,
        name=name,
        description=description,
        search_text=search_text,
        max_num=max_num,
        user_id=user_id,
        status=status,
        page=page,
        page_size=page_size,
    )


# ─── Endpoints ───────────────────────────────────────────────────────────────

@router.post("/add", response_model=BaseResponse[int])
def create_team(
    body: CreateTeamRequest,
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Create a new team. The caller becomes its leader and first member."""
    logger.info("team_create_requested", name=body.name, user_id=caller.user_id)
    team_id = team_service.create_team(TeamCreate(**body.model_dump()), caller)
    return success(team_id)


@router.delete("/{team_id}", response_model=BaseResponse[bool])
def delete_team(
    team_id: int,
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Disband a team the caller leads."""
    return success(team_service.delete_team(team_id, caller))


@router.put("/update", response_model=BaseResponse[bool])
def update_team(
    body: UpdateTeamRequest,
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Update a team the caller leads."""
    patch = TeamUpdate(**body.model_dump(exclude_unset=True))
    return success(team_service.update_team(patch, caller))


@router.get("/get", response_model=BaseResponse[SafeTeam])
def get_team(
    id: int = Query(...),
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Get a team by ID (password never included)."""
    return success(team_service.get_team(id))


@router.get("/list", response_model=BaseResponse[list[TeamQueryView]])
def list_teams(
    query: TeamQuery = Depends(team_query_params),
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """All teams matching the filters."""
    return success(team_service.list_teams(query, caller))


@router.get("/page", response_model=BaseResponse[Page[TeamQueryView]])
def page_teams(
    query: TeamQuery = Depends(team_query_params),
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """One page of teams matching the filters. page and pageSize are required."""
    return success(team_service.page_teams(query, caller))


@router.post("/join", response_model=BaseResponse[bool])
def join_team(
    body: JoinTeamRequest,
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Join a team. Secret teams need their password."""
    return success(team_service.join_team(body.team_id, body.password, caller))


@router.post("/exit", response_model=BaseResponse[bool])
def exit_team(
    body: ExitTeamRequest,
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Leave a team."""
    return success(team_service.exit_team(body.team_id, caller))


@router.post("/change", response_model=BaseResponse[bool])
def change_leader(
    body: ChangeLeaderRequest,
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Hand leadership to another member."""
    return success(team_service.change_leader(caller, body.new_user_id, body.team_id))


@router.post("/kick", response_model=BaseResponse[bool])
def kick_out(
    body: KickOutRequest,
    caller: CallerContext = Depends(require_auth),
    team_service: TeamService = Depends(get_team_service),
):
    """Remove a member from a team the caller leads."""
    return success(team_service.kick_out(body.team_id, body.user_id, caller))
