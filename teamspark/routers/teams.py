from typing import List

from fastapi import APIRouter, Depends, status

from teamspark.routers.auth_deps import get_service
from teamspark.schemas.team import TeamCreate, TeamMemberAdd, TeamResponse
from teamspark.services.team_service import TeamService

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("/", response_model=List[TeamResponse])
def list_teams(service: TeamService = Depends(get_service(TeamService))):
    return service.list_teams()


@router.post("/", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
def create_team(data: TeamCreate, service: TeamService = Depends(get_service(TeamService))):
    return service.create_team(data)


@router.get("/{team_id}", response_model=TeamResponse)
def get_team(team_id: int, service: TeamService = Depends(get_service(TeamService))):
    return service.get_team(team_id)


@router.post("/{team_id}/members", response_model=TeamResponse)
def add_team_member(
    team_id: int,
    data: TeamMemberAdd,
    service: TeamService = Depends(get_service(TeamService)),
):
    return service.add_member(team_id, data.user_id)
