"""
Task assignment, listings and lifecycle transitions.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from loguru import logger

from projectflow_api.workspace.enums import HISTORY_TASK_STATUSES
from projectflow_api.workspace.enums import ONGOING_TASK_STATUSES
from projectflow_api.workspace.enums import ActivityAction
from projectflow_api.workspace.enums import EntityType
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.enums import SequenceKind
from projectflow_api.workspace.enums import TaskStatus
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.models.task import Task
from projectflow_api.workspace.orchestrator.common import record_activity
from projectflow_api.workspace.orchestrator.common import reserve_identifier
from projectflow_api.workspace.orchestrator.common import utcnow
from projectflow_api.workspace.rules import task_lifecycle
from projectflow_api.workspace.rules.authorization import COMPLETION_DENIED
from projectflow_api.workspace.rules.authorization import Permission
from projectflow_api.workspace.rules.authorization import check_batch_update
from projectflow_api.workspace.rules.authorization import check_not_self_assignment
from projectflow_api.workspace.rules.authorization import check_task_assignment
from projectflow_api.workspace.rules.authorization import check_task_completion
from projectflow_api.workspace.rules.authorization import check_task_delete
from projectflow_api.workspace.rules.authorization import check_task_edit
from projectflow_api.workspace.rules.authorization import require_self_or_permission

# Plain fields copied into an update when present
_TEXT_FIELDS = ("title", "description", "due_date")


def _tasks(rows) -> List[Task]:
    return [Task(**row) for row in rows]


def _required(data: Dict[str, Any], key: str, message: str) -> str:
    value = data.get(key)
    if value is None or not str(value).strip():
        raise ValidationFailed(message)
    return str(value).strip()


async def _employee(store, company_name: str, team_member_id: str, message: str) -> Dict[str, Any]:
    row = await store.employees.get_by_team_member_id(company_name, team_member_id)
    if row is None:
        raise NotFound(message)
    return row


async def _project_exists(store, company_name: str, project_id: str) -> None:
    if await store.projects.get(company_name, project_id) is None:
        raise NotFound("Project with this project_id not found.")


async def get_task(store, company_name: str, task_id: str) -> Task:
    row = await store.tasks.get(company_name, task_id)
    if row is None:
        raise NotFound("Task not found with the given task_id.")
    return Task(**row)


# ════════════════════════════════════════════════════════════════════════════
# Create
# ════════════════════════════════════════════════════════════════════════════


async def create_task(store, principal: Principal, data: Dict[str, Any]) -> Task:
    """
    Assign a new task to an employee of the tenant.

    Parameters
    ----------
    data : dict
        ``title``, ``project_id``, ``priority``, ``due_date`` and
        ``assigned_to`` are required; ``description`` is optional.

    Raises
    ------
    ValidationFailed
        A required field is missing or the priority is unknown.
    Forbidden
        The role may not assign tasks, or the assignee is the caller.
    NotFound
        The project or the assignee does not exist in the tenant.
    """
    company_name = principal.company_name
    title = _required(data, "title", "Title is required.")
    project_id = _required(data, "project_id", "Project is required.")
    priority = task_lifecycle.parse_priority(data.get("priority"))
    due_date = _required(data, "due_date", "Due date is required.")
    assigned_to = _required(data, "assigned_to", "Assignee is required.")

    check_task_assignment(principal, assigned_to)
    await _project_exists(store, company_name, project_id)
    await _employee(store, company_name, assigned_to, "Employee with this teamMemberId not found.")

    task_id = await reserve_identifier(store, SequenceKind.TASK, company_name, await store.tasks.task_ids(company_name))
    description = data.get("description")
    row = await store.tasks.create(
        {
            "company_name": company_name,
            "task_id": task_id,
            "title": title,
            "description": description.strip() if description else None,
            "status": TaskStatus.PENDING.value,
            "assigned_to": assigned_to,
            "assigned_by": principal.account_id,
            "assigned_by_role": principal.role.value,
            "project_id": project_id,
            "priority": priority.value,
            "due_date": due_date,
            "comments": [],
        }
    )
    task = Task(**row)
    logger.info("Task created", company_name=company_name, task_id=task_id, assigned_to=assigned_to)
    await record_activity(
        store,
        company_name,
        EntityType.TASK,
        ActivityAction.ADD,
        task.title,
        principal.display_name,
        f"Created task {task.title}",
    )
    return task


# ════════════════════════════════════════════════════════════════════════════
# Listings
# ════════════════════════════════════════════════════════════════════════════


async def my_tasks(store, principal: Principal) -> List[Task]:
    """Tasks assigned to the caller (owners are never assignees)."""
    if principal.team_member_id is None:
        return []
    return _tasks(await store.tasks.list_by_company(principal.company_name, assigned_to=[principal.team_member_id]))


async def all_tasks(store, principal: Principal) -> List[Task]:
    """
    Tasks visible to the caller.

    A team lead sees the tasks of the members of the teams they lead plus
    their own; a team member sees their own; other roles see the tenant.
    """
    company_name = principal.company_name
    if principal.role == Role.TEAM_LEAD:
        assignees = {principal.team_member_id}
        for team in await store.teams.list_led_by(company_name, principal.team_member_id):
            assignees.update(team["members"])
        return _tasks(await store.tasks.list_by_company(company_name, assigned_to=sorted(assignees)))
    if principal.role == Role.TEAM_MEMBER:
        return await my_tasks(store, principal)
    return _tasks(await store.tasks.list_by_company(company_name))


async def task_history(store, principal: Principal, team_member_id: str) -> List[Task]:
    """Completed and deleted tasks of one assignee."""
    require_self_or_permission(principal, team_member_id, Permission.ASSIGN_TASKS)
    rows = await store.tasks.list_by_company(
        principal.company_name,
        assigned_to=[team_member_id],
        statuses=[s.value for s in HISTORY_TASK_STATUSES],
    )
    return _tasks(rows)


async def ongoing_tasks(store, principal: Principal, team_member_id: Optional[str] = None) -> List[Task]:
    """Pending, in-progress and verification tasks, optionally of one assignee."""
    if team_member_id is None and principal.role == Role.TEAM_MEMBER:
        team_member_id = principal.team_member_id
    if team_member_id is not None:
        require_self_or_permission(principal, team_member_id, Permission.ASSIGN_TASKS)
    rows = await store.tasks.list_by_company(
        principal.company_name,
        assigned_to=[team_member_id] if team_member_id is not None else None,
        statuses=[s.value for s in ONGOING_TASK_STATUSES],
    )
    return _tasks(rows)


async def tasks_by_member_in_project(store, principal: Principal, team_member_id: str, project_id: str) -> List[Task]:
    require_self_or_permission(principal, team_member_id, Permission.ASSIGN_TASKS)
    company_name = principal.company_name
    await _employee(store, company_name, team_member_id, "Employee not found.")
    if await store.projects.get(company_name, project_id) is None:
        raise NotFound("Project not found.")
    rows = await store.tasks.list_by_company(
        company_name, assigned_to=[team_member_id], project_id=project_id, exclude_deleted=True
    )
    if not rows:
        raise NotFound("No tasks found for this employee in this project.")
    return _tasks(rows)


# ════════════════════════════════════════════════════════════════════════════
# Single task
# ════════════════════════════════════════════════════════════════════════════


async def update_task(store, principal: Principal, task_id: str, data: Dict[str, Any]) -> Task:
    """
    Edit one task.

    A team member may only change the status of their own task. Other roles
    may edit the task fields, reassign it (which restarts it as pending) and
    append a comment, within the cross-role restrictions.
    """
    company_name = principal.company_name
    task = await get_task(store, company_name, task_id)
    task_lifecycle.ensure_not_deleted(task)
    check_task_edit(principal, task)

    now = utcnow()
    fields: Dict[str, Any] = {}
    comment = None

    if principal.role == Role.TEAM_MEMBER:
        if set(data) - {"status"} or not data.get("status"):
            raise ValidationFailed("Team members can only update the status field.")
    else:
        for key in _TEXT_FIELDS:
            if data.get(key):
                fields[key] = data[key]
        if data.get("priority"):
            fields["priority"] = task_lifecycle.parse_priority(data["priority"]).value
        if data.get("project_id"):
            await _project_exists(store, company_name, data["project_id"])
            fields["project_id"] = data["project_id"]
        comment = task_lifecycle.comment_entry(data.get("comment"), principal.display_name, now)

    if data.get("status"):
        status = task_lifecycle.parse_update_status(data["status"])
        if status == TaskStatus.COMPLETED:
            check_task_completion(principal, [task])
        fields.update(task_lifecycle.status_fields(status, now))

    new_assignee = data.get("assigned_to")
    if new_assignee and principal.role != Role.TEAM_MEMBER and new_assignee != task.assigned_to:
        check_not_self_assignment(principal, new_assignee)
        await _employee(store, company_name, new_assignee, "New assigned member not found.")
        fields.update(task_lifecycle.reassignment_fields(new_assignee))

    if not fields and comment is None:
        raise ValidationFailed("No valid update fields provided.")

    row = await store.tasks.update_fields(company_name, task_id, fields, comment)
    if row is None:
        raise NotFound("Task not found with the given task_id.")
    updated = Task(**row)
    logger.info("Task updated", company_name=company_name, task_id=task_id, fields=sorted(fields))
    await record_activity(
        store,
        company_name,
        EntityType.TASK,
        ActivityAction.EDIT,
        updated.title,
        principal.display_name,
        f"Updated task {updated.title}",
    )
    return updated


async def soft_delete_task(store, principal: Principal, task_id: str, reason: Optional[str] = None) -> Task:
    """Mark a task deleted with an optional reason. Deleted is terminal."""
    if principal.role == Role.TEAM_MEMBER:
        raise Forbidden("You are not authorized to delete tasks.")
    company_name = principal.company_name
    task = await get_task(store, company_name, task_id)
    task_lifecycle.ensure_not_deleted(task)

    assignee = await _employee(store, company_name, task.assigned_to, "Assignee of the task not found.")
    check_task_delete(principal, task.assigned_to, Role(assignee["role"]))

    fields: Dict[str, Any] = {"status": TaskStatus.DELETED.value, "deleted_at": utcnow()}
    if reason:
        fields["deleted_reason"] = reason
    row = await store.tasks.update_fields(company_name, task_id, fields)
    if row is None:
        raise NotFound("Task not found with the given task_id.")
    deleted = Task(**row)
    logger.info("Task soft deleted", company_name=company_name, task_id=task_id)
    await record_activity(
        store,
        company_name,
        EntityType.TASK,
        ActivityAction.DELETE,
        deleted.title,
        principal.display_name,
        f"Task {deleted.title} marked as deleted.",
    )
    return deleted


# ════════════════════════════════════════════════════════════════════════════
# Batch operations over one assignee
# ════════════════════════════════════════════════════════════════════════════


async def batch_update(store, principal: Principal, team_member_id: str, data: Dict[str, Any]) -> int:
    """
    Update every non-deleted task of one assignee.

    Reassignment (``new_assigned_to``) restarts the tasks as pending and
    takes precedence over a requested status. Completion is all-or-nothing:
    the caller must be a team lead and every task must be in verification,
    re-checked under lock when the batch is written.

    Returns:
        Number of tasks updated
    """
    company_name = principal.company_name
    tasks = _tasks(await store.tasks.list_by_company(company_name, assigned_to=[team_member_id], exclude_deleted=True))
    if not tasks:
        raise NotFound("No tasks found for the given teamMemberId.")
    check_batch_update(principal, tasks)

    now = utcnow()
    fields: Dict[str, Any] = {key: data[key] for key in _TEXT_FIELDS if data.get(key)}
    if data.get("priority"):
        fields["priority"] = task_lifecycle.parse_priority(data["priority"]).value
    if data.get("project_id"):
        await _project_exists(store, company_name, data["project_id"])
        fields["project_id"] = data["project_id"]

    require_verification = False
    if data.get("new_assigned_to"):
        check_not_self_assignment(principal, data["new_assigned_to"])
        await _employee(store, company_name, data["new_assigned_to"], "New assigned member not found.")
        fields.update(task_lifecycle.reassignment_fields(data["new_assigned_to"]))
    elif data.get("status"):
        status = task_lifecycle.parse_update_status(data["status"])
        if status == TaskStatus.COMPLETED:
            check_task_completion(principal, tasks)
            require_verification = True
        fields.update(task_lifecycle.status_fields(status, now))

    comment = task_lifecycle.comment_entry(data.get("comment"), principal.display_name, now)
    if not fields and comment is None:
        raise ValidationFailed("No valid update fields provided.")

    updated = await store.tasks.update_for_assignee(
        company_name, team_member_id, fields, comment, require_verification=require_verification
    )
    if updated is None:
        raise Forbidden(COMPLETION_DENIED)
    logger.info("Tasks updated", company_name=company_name, assigned_to=team_member_id, count=updated)
    await record_activity(
        store,
        company_name,
        EntityType.TASK,
        ActivityAction.EDIT,
        team_member_id,
        principal.display_name,
        f"Updated {updated} tasks of {team_member_id}",
    )
    return updated


async def batch_delete(store, principal: Principal, team_member_id: str) -> int:
    """
    Permanently delete every task of one assignee.

    Allowed by the assignee's role as for single deletes. When the assignee
    no longer exists only owner and admin may clear their tasks.
    """
    company_name = principal.company_name
    tasks = await store.tasks.list_by_company(company_name, assigned_to=[team_member_id])
    if not tasks:
        raise NotFound("No tasks found for the given teamMemberId.")

    assignee = await store.employees.get_by_team_member_id(company_name, team_member_id)
    if assignee is not None:
        check_task_delete(principal, team_member_id, Role(assignee["role"]))
    elif principal.role not in (Role.OWNER, Role.ADMIN):
        raise NotFound("Assignee of the task not found.")

    deleted = await store.tasks.delete_for_assignee(company_name, team_member_id)
    logger.info("Tasks deleted", company_name=company_name, assigned_to=team_member_id, count=deleted)
    await record_activity(
        store,
        company_name,
        EntityType.TASK,
        ActivityAction.PERMANENTLY_DELETE,
        team_member_id,
        principal.display_name,
        f"Deleted all {deleted} tasks of {team_member_id}",
    )
    return deleted
