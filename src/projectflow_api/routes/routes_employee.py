from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from loguru import logger

from projectflow_api.dependencies import get_current_principal
from projectflow_api.dependencies import get_email_sender
from projectflow_api.dependencies import get_settings
from projectflow_api.dependencies import get_store
from projectflow_api.schemas.schemas import EmployeeCreateRequest
from projectflow_api.schemas.schemas import EmployeeProfile
from projectflow_api.schemas.schemas import EmployeeUpdateRequest
from projectflow_api.schemas.schemas import FirstLoginRequest
from projectflow_api.schemas.schemas import MessageResponse
from projectflow_api.schemas.schemas import RoleInfo
from projectflow_api.schemas.schemas import profile_of
from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator import employee_flow

ROUTER_EMPLOYEE = APIRouter(tags=["Employees"])


@ROUTER_EMPLOYEE.post(
    "/employees",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_201_CREATED: {
            "description": "Employee created; credentials emailed",
            "content": {
                "application/json": {"example": {"message": "Employee added successfully", "employee": {}}}
            },
        },
        status.HTTP_403_FORBIDDEN: {
            "description": "Caller may not manage employees",
            "content": {"application/json": {"example": {"detail": "Only owner, admin, and manager can manage employees"}}},
        },
        status.HTTP_409_CONFLICT: {
            "description": "Email already used by an owner or employee",
            "content": {"application/json": {"example": {"detail": "Email already exists for an employee"}}},
        },
    },
)
async def add_employee(
    request: Request,
    payload: EmployeeCreateRequest,
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    email_sender=Depends(get_email_sender),
    principal: Principal = Depends(get_current_principal),
):
    """Add an employee with a temporary password."""
    logger.info("Adding employee", role=payload.role, method=request.method, path=request.url.path)
    employee = await employee_flow.add_employee(store, principal, payload.model_dump(), settings, email_sender)
    return {"message": "Employee added successfully", "employee": profile_of(employee)}


##########################


@ROUTER_EMPLOYEE.post(
    "/employees/first-login",
    response_model=MessageResponse,
    responses={
        status.HTTP_403_FORBIDDEN: {
            "description": "Temporary password expired",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Your temporary password has expired. Please contact the administrator for a new one."
                    }
                }
            },
        },
    },
)
async def first_login(
    request: Request,
    payload: FirstLoginRequest,
    store=Depends(get_store),
) -> MessageResponse:
    """Replace the temporary password of a new employee."""
    logger.info("Employee first login", method=request.method, path=request.url.path)
    await employee_flow.first_login(
        store, payload.email, payload.old_password, payload.new_password, payload.confirm_password
    )
    return MessageResponse(message="Password updated successfully. Please log in with your new password.")


##########################


@ROUTER_EMPLOYEE.put("/employees/{team_member_id}")
async def edit_employee(
    request: Request,
    team_member_id: str,
    payload: EmployeeUpdateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Edit an employee of the caller's company."""
    logger.info("Editing employee", team_member_id=team_member_id, method=request.method, path=request.url.path)
    employee = await employee_flow.edit_employee(
        store, principal, team_member_id, payload.model_dump(exclude_none=True)
    )
    return {"message": "Employee updated successfully", "employee": profile_of(employee)}


##########################


@ROUTER_EMPLOYEE.delete(
    "/employees/{team_member_id}",
    response_model=MessageResponse,
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Employee not found",
            "content": {"application/json": {"example": {"detail": "Employee not found"}}},
        },
    },
)
async def delete_employee(
    request: Request,
    team_member_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    """Delete an employee."""
    logger.info("Deleting employee", team_member_id=team_member_id, method=request.method, path=request.url.path)
    await employee_flow.delete_employee(store, principal, team_member_id)
    return MessageResponse(message="Employee deleted successfully")


##########################


async def _list(request: Request, store, principal: Principal, role=None) -> List[EmployeeProfile]:
    logger.info(
        "Listing employees",
        role=role.value if role else None,
        method=request.method,
        path=request.url.path,
    )
    return [profile_of(employee) for employee in await employee_flow.list_employees(store, principal, role)]


@ROUTER_EMPLOYEE.get("/employees", response_model=List[EmployeeProfile])
async def list_employees(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """All employees of the caller's company."""
    return await _list(request, store, principal)


@ROUTER_EMPLOYEE.get("/employees/team-leads", response_model=List[EmployeeProfile])
async def list_team_leads(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    return await _list(request, store, principal, Role.TEAM_LEAD)


@ROUTER_EMPLOYEE.get("/employees/admins", response_model=List[EmployeeProfile])
async def list_admins(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    return await _list(request, store, principal, Role.ADMIN)


@ROUTER_EMPLOYEE.get("/employees/managers", response_model=List[EmployeeProfile])
async def list_managers(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    return await _list(request, store, principal, Role.MANAGER)


@ROUTER_EMPLOYEE.get("/employees/team-members", response_model=List[EmployeeProfile])
async def list_team_members(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    return await _list(request, store, principal, Role.TEAM_MEMBER)


##########################


@ROUTER_EMPLOYEE.get("/employees/roles", response_model=List[RoleInfo])
async def list_roles(principal: Principal = Depends(get_current_principal)):
    """Roles that can be given to an employee."""
    return [RoleInfo(**role) for role in employee_flow.ROLE_CATALOGUE]
