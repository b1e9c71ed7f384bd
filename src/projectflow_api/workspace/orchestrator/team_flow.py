"""
Team directory.

A team has one lead (an employee with role teamLead) and members (employees
with role teamMember) of the same tenant, all referenced by team member id.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from loguru import logger
from pydantic import BaseModel
from pydantic import Field

from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import ActivityAction
from projectflow_api.workspace.enums import EntityType
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.account import EmployeeAccount
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.models.team import Team
from projectflow_api.workspace.orchestrator.common import account_from_row
from projectflow_api.workspace.orchestrator.common import record_activity
from projectflow_api.workspace.rules.authorization import Permission
from projectflow_api.workspace.rules.authorization import require_permission


class TeamDetails(BaseModel):
    """A team with its lead and members resolved to employee records."""

    team: Team
    lead: Optional[EmployeeAccount] = None
    members: List[EmployeeAccount] = Field(default_factory=list)


def _unique(ids: List[str]) -> List[str]:
    seen = []
    for team_member_id in (i.strip() for i in ids):
        if team_member_id and team_member_id not in seen:
            seen.append(team_member_id)
    return seen


async def _validate_lead(store, company_name: str, team_member_id: str) -> str:
    row = await store.employees.get_by_team_member_id(company_name, team_member_id.strip())
    if row is None or row["role"] != Role.TEAM_LEAD.value:
        raise ValidationFailed("Provided teamMemberId is not a valid team lead")
    return row["team_member_id"]


async def _validate_members(store, company_name: str, team_member_ids: List[str]) -> List[str]:
    ids = _unique(team_member_ids)
    if not ids:
        return []
    rows = await store.employees.list_by_team_member_ids(company_name, ids)
    valid = {row["team_member_id"] for row in rows if row["role"] == Role.TEAM_MEMBER.value}
    if valid != set(ids):
        raise ValidationFailed("One or more provided teamMemberIds are invalid or not team members")
    return ids


async def _details(store, team: Team) -> TeamDetails:
    ids = [team.team_lead, *team.members]
    rows = await store.employees.list_by_team_member_ids(team.company_name, ids)
    by_id = {row["team_member_id"]: account_from_row(AccountKind.EMPLOYEE, row) for row in rows}
    return TeamDetails(
        team=team,
        lead=by_id.get(team.team_lead),
        members=[by_id[m] for m in team.members if m in by_id],
    )


async def get_team(store, company_name: str, team_name: str) -> Team:
    row = await store.teams.get_by_name(company_name, team_name.strip())
    if row is None:
        raise NotFound("Team not found")
    return Team(**row)


async def create_team(store, principal: Principal, data: Dict[str, Any]) -> Team:
    require_permission(principal, Permission.MANAGE_TEAMS)
    company_name = principal.company_name
    team_name = (data.get("team_name") or "").strip()
    if not team_name:
        raise ValidationFailed("Team name is required")
    if await store.teams.get_by_name(company_name, team_name) is not None:
        raise Conflict("A team with this name already exists")

    row = await store.teams.create(
        {
            "company_name": company_name,
            "team_name": team_name,
            "description": data.get("description"),
            "team_lead": await _validate_lead(store, company_name, data["team_lead"]),
            "members": await _validate_members(store, company_name, data.get("members") or []),
            "created_by": principal.account_id,
        }
    )
    team = Team(**row)
    logger.info("Team created", company_name=company_name, team_name=team_name, members=len(team.members))
    await record_activity(
        store,
        company_name,
        EntityType.TEAM,
        ActivityAction.ADD,
        team.team_name,
        principal.display_name,
        f"Created team {team.team_name}",
    )
    return team


async def list_teams(store, principal: Principal) -> List[TeamDetails]:
    rows = await store.teams.list_by_company(principal.company_name)
    return [await _details(store, Team(**row)) for row in rows]


async def team_members(store, principal: Principal, team_name: str) -> TeamDetails:
    return await _details(store, await get_team(store, principal.company_name, team_name))


async def update_team(store, principal: Principal, team_name: str, data: Dict[str, Any]) -> Team:
    """Replace the description, lead and/or member list; omitted fields are kept."""
    require_permission(principal, Permission.MANAGE_TEAMS)
    team = await get_team(store, principal.company_name, team_name)

    fields: Dict[str, Any] = {}
    if data.get("description") is not None:
        fields["description"] = data["description"]
    if data.get("team_lead") is not None:
        fields["team_lead"] = await _validate_lead(store, principal.company_name, data["team_lead"])
    if data.get("members") is not None:
        fields["members"] = await _validate_members(store, principal.company_name, data["members"])
    if not fields:
        raise ValidationFailed("No valid update fields provided")

    row = await store.teams.update_fields(principal.company_name, team.team_name, fields)
    if row is None:
        raise NotFound("Team not found")
    updated = Team(**row)
    await record_activity(
        store,
        principal.company_name,
        EntityType.TEAM,
        ActivityAction.EDIT,
        updated.team_name,
        principal.display_name,
        f"Updated team {updated.team_name}",
    )
    return updated


async def delete_team(store, principal: Principal, team_name: str) -> None:
    require_permission(principal, Permission.MANAGE_TEAMS)
    team = await get_team(store, principal.company_name, team_name)
    if not await store.teams.delete(principal.company_name, team.team_name):
        raise NotFound("Team not found")
    logger.info("Team deleted", company_name=principal.company_name, team_name=team.team_name)
    await record_activity(
        store,
        principal.company_name,
        EntityType.TEAM,
        ActivityAction.DELETE,
        team.team_name,
        principal.display_name,
        f"Deleted team {team.team_name}",
    )
