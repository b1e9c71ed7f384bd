"""
Employee directory.

Employees are created by owners, admins and managers with a temporary
password that expires after ``temp_password_ttl_minutes``. The first login
replaces it; employees who never do so are removed by the reaper.
"""

from datetime import timedelta
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from loguru import logger

from projectflow_api.auth.passwords import generate_temporary_password
from projectflow_api.auth.passwords import hash_password
from projectflow_api.auth.passwords import verify_password
from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import EMPLOYEE_ROLES
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import ActivityAction
from projectflow_api.workspace.enums import EntityType
from projectflow_api.workspace.enums import NotificationType
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.enums import SequenceKind
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.account import EmployeeAccount
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.notifications import templates
from projectflow_api.workspace.notifications.email_sender import notify
from projectflow_api.workspace.orchestrator.common import account_from_row
from projectflow_api.workspace.orchestrator.common import email_taken
from projectflow_api.workspace.orchestrator.common import record_activity
from projectflow_api.workspace.orchestrator.common import reserve_identifier
from projectflow_api.workspace.orchestrator.common import utcnow
from projectflow_api.workspace.rules.authorization import Permission
from projectflow_api.workspace.rules.authorization import require_permission
from projectflow_api.workspace.security import otp

ROLE_CATALOGUE = [
    {"value": Role.ADMIN.value, "label": "Admin"},
    {"value": Role.MANAGER.value, "label": "Manager"},
    {"value": Role.TEAM_LEAD.value, "label": "Team Lead"},
    {"value": Role.TEAM_MEMBER.value, "label": "Team Member"},
]

EDITABLE_FIELDS = ("name", "email", "designation", "role", "location", "phone_no", "profile_logo")


def parse_employee_role(value: Optional[str]) -> Role:
    if value is None:
        return Role.TEAM_MEMBER
    try:
        role = Role(value)
    except ValueError:
        role = None
    if role not in EMPLOYEE_ROLES:
        allowed = ", ".join(r.value for r in EMPLOYEE_ROLES)
        raise ValidationFailed(f"Invalid role. Must be one of: {allowed}")
    return role


def _employee(row: Dict[str, Any]) -> EmployeeAccount:
    return account_from_row(AccountKind.EMPLOYEE, row)


async def get_employee(store, company_name: str, team_member_id: str) -> EmployeeAccount:
    row = await store.employees.get_by_team_member_id(company_name, team_member_id)
    if row is None:
        raise NotFound("Employee not found")
    return _employee(row)


async def add_employee(
    store, principal: Principal, data: Dict[str, Any], settings: Settings, email_sender
) -> EmployeeAccount:
    """
    Create an employee in the caller's tenant and email the temporary password.

    The identifier is ``<initials>-<nnn>``, numbered above every identifier the
    tenant ever used.
    """
    require_permission(principal, Permission.MANAGE_EMPLOYEES)
    role = parse_employee_role(data.get("role"))
    if await email_taken(store, data["email"]):
        raise Conflict("Email already exists for an employee")

    company_name = principal.company_name
    team_member_id = await reserve_identifier(
        store, SequenceKind.EMPLOYEE, company_name, await store.employees.team_member_ids(company_name)
    )
    temporary_password = generate_temporary_password()
    row = await store.employees.create(
        {
            "name": data["name"],
            "email": data["email"],
            "phone_no": data["phone_no"],
            "designation": data.get("designation"),
            "location": data.get("location"),
            "profile_logo": data.get("profile_logo"),
            "role": role.value,
            "team_member_id": team_member_id,
            "company_name": company_name,
            "password_hash": hash_password(temporary_password),
            "must_change_password": True,
            "password_expires_at": utcnow() + timedelta(minutes=settings.temp_password_ttl_minutes),
            "added_by": principal.account_id,
        }
    )
    employee = _employee(row)
    logger.info("Employee added", company_name=company_name, team_member_id=team_member_id, role=role.value)

    await record_activity(
        store,
        company_name,
        EntityType.EMPLOYEE,
        ActivityAction.ADD,
        employee.name,
        principal.display_name,
        f"Added new employee {employee.name}",
    )

    subject, body = templates.employee_welcome(
        employee.name,
        company_name,
        employee.email,
        temporary_password,
        team_member_id,
        settings.temp_password_ttl_minutes,
        f"{settings.app_base_url.rstrip('/')}/emp-login",
    )
    await notify(
        store, email_sender, NotificationType.EMPLOYEE_WELCOME, employee.email, subject, body, company_name=company_name
    )
    return employee


async def first_login(store, email: str, old_password: str, new_password: str, confirm_password: str) -> None:
    """
    Replace the temporary password.

    The expiry check comes before the password check, so an expired temporary
    password is reported as expired even when it is typed correctly.
    """
    row = await store.employees.get_by_email(email)
    if row is None:
        raise NotFound("Employee not found")
    employee = _employee(row)

    if employee.temporary_password_expired(utcnow()):
        raise Forbidden("Your temporary password has expired. Please contact the administrator for a new one.")
    if not employee.must_change_password:
        raise ValidationFailed("Password already updated, use login instead")
    if not verify_password(old_password, employee.password_hash):
        raise ValidationFailed("Old password is incorrect")
    if new_password != confirm_password:
        raise ValidationFailed("New passwords do not match")
    otp.check_new_password(new_password)

    await store.employees.update_fields(
        employee.account_id,
        {
            "password_hash": hash_password(new_password),
            "password_expires_at": None,
            "must_change_password": False,
        },
    )
    logger.info("Employee completed first login", company_name=employee.company_name, team_member_id=employee.team_member_id)


async def edit_employee(store, principal: Principal, team_member_id: str, data: Dict[str, Any]) -> EmployeeAccount:
    require_permission(principal, Permission.MANAGE_EMPLOYEES)
    employee = await get_employee(store, principal.company_name, team_member_id)

    fields = {key: value for key, value in data.items() if key in EDITABLE_FIELDS and value is not None}
    if not fields:
        raise ValidationFailed("No valid update fields provided")
    if "role" in fields:
        fields["role"] = parse_employee_role(fields["role"]).value
    if "email" in fields and fields["email"].lower() != employee.email.lower():
        if await email_taken(store, fields["email"]):
            raise Conflict("Email already exists for an employee")

    row = await store.employees.update_by_team_member_id(principal.company_name, team_member_id, fields)
    if row is None:
        raise NotFound("Employee not found")
    updated = _employee(row)

    await record_activity(
        store,
        principal.company_name,
        EntityType.EMPLOYEE,
        ActivityAction.EDIT,
        updated.name,
        principal.display_name,
        f"Edited employee {updated.name}",
    )
    return updated


async def delete_employee(store, principal: Principal, team_member_id: str) -> None:
    require_permission(principal, Permission.MANAGE_EMPLOYEES)
    row = await store.employees.delete(principal.company_name, team_member_id)
    if row is None:
        raise NotFound("Employee not found")

    logger.info("Employee deleted", company_name=principal.company_name, team_member_id=team_member_id)
    await record_activity(
        store,
        principal.company_name,
        EntityType.EMPLOYEE,
        ActivityAction.DELETE,
        row["name"],
        principal.display_name,
        f"Deleted employee {row['name']}",
    )


async def list_employees(store, principal: Principal, role: Optional[Role] = None) -> List[EmployeeAccount]:
    rows = await store.employees.list_by_company(principal.company_name, role.value if role else None)
    return [_employee(row) for row in rows]
