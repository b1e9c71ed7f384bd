from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from loguru import logger

from projectflow_api.dependencies import get_current_principal
from projectflow_api.dependencies import get_store
from projectflow_api.schemas.schemas import MessageResponse
from projectflow_api.schemas.schemas import TeamCreateRequest
from projectflow_api.schemas.schemas import TeamDetailsResponse
from projectflow_api.schemas.schemas import TeamUpdateRequest
from projectflow_api.schemas.schemas import profile_of
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator import team_flow
from projectflow_api.workspace.orchestrator.team_flow import TeamDetails

ROUTER_TEAM = APIRouter(tags=["Teams"])


def _details_response(details: TeamDetails) -> TeamDetailsResponse:
    return TeamDetailsResponse(
        team_id=details.team.team_id,
        team_name=details.team.team_name,
        description=details.team.description,
        team_lead=profile_of(details.lead) if details.lead else None,
        members=[profile_of(member) for member in details.members],
        created_at=details.team.created_at,
    )


@ROUTER_TEAM.post(
    "/teams",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "Lead or members invalid",
            "content": {
                "application/json": {"example": {"detail": "Provided teamMemberId is not a valid team lead"}}
            },
        },
        status.HTTP_409_CONFLICT: {
            "description": "Team name already used in this company",
            "content": {"application/json": {"example": {"detail": "Team name already exists"}}},
        },
    },
)
async def create_team(
    request: Request,
    payload: TeamCreateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Create a team with a lead and members."""
    logger.info("Creating team", team_name=payload.team_name, method=request.method, path=request.url.path)
    team = await team_flow.create_team(store, principal, payload.model_dump())
    return {"message": "Team created successfully", "team": team.model_dump(exclude={"company_name"})}


##########################


@ROUTER_TEAM.get("/teams", response_model=List[TeamDetailsResponse])
async def list_teams(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Teams of the caller's company with lead and member details."""
    logger.info("Listing teams", method=request.method, path=request.url.path)
    return [_details_response(details) for details in await team_flow.list_teams(store, principal)]


##########################


@ROUTER_TEAM.get(
    "/teams/{team_name}/members",
    response_model=TeamDetailsResponse,
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Team not found",
            "content": {"application/json": {"example": {"detail": "Team not found"}}},
        },
    },
)
async def team_members(
    request: Request,
    team_name: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Getting team members", team_name=team_name, method=request.method, path=request.url.path)
    return _details_response(await team_flow.team_members(store, principal, team_name))


##########################


@ROUTER_TEAM.put("/teams/{team_name}")
async def update_team(
    request: Request,
    team_name: str,
    payload: TeamUpdateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Change the description, lead or members of a team."""
    logger.info("Updating team", team_name=team_name, method=request.method, path=request.url.path)
    team = await team_flow.update_team(store, principal, team_name, payload.model_dump(exclude_none=True))
    return {"message": "Team updated successfully", "team": team.model_dump(exclude={"company_name"})}


##########################


@ROUTER_TEAM.delete("/teams/{team_name}", response_model=MessageResponse)
async def delete_team(
    request: Request,
    team_name: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    logger.info("Deleting team", team_name=team_name, method=request.method, path=request.url.path)
    await team_flow.delete_team(store, principal, team_name)
    return MessageResponse(message="Team deleted successfully")
