"""
Authorization Policy

Role-based permission matrix layered over tenant scoping.

Pure Python logic - no FastAPI imports, no database access. Every check
raises ``Forbidden`` with a description; tenant mismatches are handled by
company-scoped lookups upstream and surface as ``NotFound``.
"""

from enum import Enum
from typing import Dict
from typing import Iterable
from typing import Optional
from typing import Set

from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.enums import TaskStatus
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.models.task import Task

# ============================================================================
# Permissions
# ============================================================================


class Permission(str, Enum):
    """Operation families gated by role."""

    MANAGE_EMPLOYEES = "employee:manage"
    MANAGE_TEAMS = "team:manage"
    MANAGE_PROJECTS = "project:manage"
    VIEW_PROJECTS = "project:view"
    MANAGE_PROJECT_STRUCTURE = "project:structure"
    UPDATE_WORK_STATUS = "project:status"
    COMMENT = "project:comment"
    ASSIGN_TASKS = "task:assign"


_MANAGEMENT = {
    Permission.MANAGE_EMPLOYEES,
    Permission.MANAGE_TEAMS,
    Permission.MANAGE_PROJECTS,
    Permission.VIEW_PROJECTS,
    Permission.MANAGE_PROJECT_STRUCTURE,
    Permission.UPDATE_WORK_STATUS,
    Permission.COMMENT,
    Permission.ASSIGN_TASKS,
}

ROLE_PERMISSIONS: Dict[Role, Set[Permission]] = {
    Role.OWNER: set(_MANAGEMENT),
    Role.ADMIN: set(_MANAGEMENT),
    Role.MANAGER: set(_MANAGEMENT),
    Role.TEAM_LEAD: {
        Permission.MANAGE_PROJECT_STRUCTURE,
        Permission.UPDATE_WORK_STATUS,
        Permission.COMMENT,
        Permission.ASSIGN_TASKS,
    },
    Role.TEAM_MEMBER: {
        Permission.UPDATE_WORK_STATUS,
        Permission.COMMENT,
    },
}

DENIAL_MESSAGES: Dict[Permission, str] = {
    Permission.MANAGE_EMPLOYEES: "Only owner, admin, and manager can manage employees",
    Permission.MANAGE_TEAMS: "Only owner, admin, and manager can manage teams",
    Permission.MANAGE_PROJECTS: "Only owner, admin, and manager can manage projects",
    Permission.VIEW_PROJECTS: "Only owner, admin, and manager can view all projects",
    Permission.MANAGE_PROJECT_STRUCTURE: "Only owner, admin, manager, and team lead can change project phases and subtasks",
    Permission.UPDATE_WORK_STATUS: "You are not allowed to update status",
    Permission.COMMENT: "You are not allowed to comment",
    Permission.ASSIGN_TASKS: "Access denied for assigning tasks.",
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, set())


def require_permission(principal: Principal, permission: Permission, message: Optional[str] = None) -> None:
    """Raise ``Forbidden`` unless the principal's role grants ``permission``."""
    if not has_permission(principal.role, permission):
        raise Forbidden(message or DENIAL_MESSAGES[permission])


def require_self_or_permission(principal: Principal, team_member_id: str, permission: Permission) -> None:
    """A team member may only query their own records; other roles need ``permission``."""
    if principal.role == Role.TEAM_MEMBER:
        if principal.team_member_id != team_member_id:
            raise Forbidden("Unauthorized access")
        return
    require_permission(principal, permission)


# ============================================================================
# Task rules
# ============================================================================


def check_not_self_assignment(principal: Principal, assigned_to: str) -> None:
    """Nobody assigns or reassigns a task to themself, whatever their role."""
    if principal.team_member_id is not None and assigned_to == principal.team_member_id:
        raise Forbidden("You cannot assign task to yourself.")


def check_task_assignment(principal: Principal, assigned_to: str) -> None:
    """Only assigning roles may create tasks, and never for themselves."""
    require_permission(principal, Permission.ASSIGN_TASKS)
    check_not_self_assignment(principal, assigned_to)


def check_task_edit(principal: Principal, task: Task) -> None:
    """
    Cross-role edit restrictions for a single task.

    - teamMember: only tasks assigned to themself
    - admin/manager: not tasks assigned by an owner
    - teamLead: not tasks assigned by an owner or admin, nor their own task
    """
    own_task = principal.team_member_id is not None and task.assigned_to == principal.team_member_id

    if principal.role == Role.TEAM_MEMBER:
        if not own_task:
            raise Forbidden("Team members can only update their own task status.")
        return

    if principal.role in (Role.ADMIN, Role.MANAGER) and task.assigned_by_role == Role.OWNER:
        raise Forbidden("You are not authorized to update this task.")

    if principal.role == Role.TEAM_LEAD:
        if task.assigned_by_role in (Role.OWNER, Role.ADMIN) or own_task:
            raise Forbidden("You are not authorized to update this task.")


def check_batch_update(principal: Principal, tasks: Iterable[Task]) -> None:
    """Owner/admin/manager may update any batch; a team lead only tasks they assigned."""
    require_permission(principal, Permission.ASSIGN_TASKS)
    if principal.role in (Role.OWNER, Role.ADMIN, Role.MANAGER):
        return
    if any(task.assigned_by != principal.account_id for task in tasks):
        raise Forbidden("Not authorized to update some tasks.")


def check_task_delete(principal: Principal, assigned_to: str, assignee_role: Role) -> None:
    """
    Task deletion by assignee role.

    - owner/admin: any task
    - manager: tasks assigned to team leads or team members
    - teamLead: tasks assigned to team members, never their own
    - teamMember: none
    """
    if principal.role in (Role.OWNER, Role.ADMIN):
        return
    if principal.role == Role.MANAGER:
        if assignee_role not in (Role.TEAM_LEAD, Role.TEAM_MEMBER):
            raise Forbidden("Managers can only delete tasks of team leads or team members.")
        return
    if principal.role == Role.TEAM_LEAD:
        if principal.team_member_id is not None and assigned_to == principal.team_member_id:
            raise Forbidden("Team leads cannot delete their own tasks.")
        if assignee_role != Role.TEAM_MEMBER:
            raise Forbidden("Team leads can only delete tasks assigned to team members.")
        return
    raise Forbidden("You are not authorized to delete tasks.")


COMPLETION_DENIED = "Only a team lead can mark tasks as completed after verification."


def check_task_completion(principal: Principal, tasks: Iterable[Task]) -> None:
    """
    All-or-nothing completion gate.

    The caller must be a team lead and every task in the batch must already be
    in verification; otherwise nothing transitions.
    """
    if principal.role != Role.TEAM_LEAD or any(task.status != TaskStatus.VERIFICATION for task in tasks):
        raise Forbidden(COMPLETION_DENIED)
