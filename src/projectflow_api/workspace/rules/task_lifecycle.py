"""
Task Lifecycle

States: pending, in-progress, verification, completed, and the terminal
deleted. Updates move freely between the open states; completion is guarded
by ``authorization.check_task_completion``; deletion only happens through the
delete operations.
"""

from datetime import datetime
from typing import Any
from typing import Dict
from typing import Optional

from projectflow_api.workspace.enums import TaskPriority
from projectflow_api.workspace.enums import TaskStatus
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.task import Task

# Status values accepted by update operations
UPDATABLE_STATUSES = (
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.VERIFICATION,
    TaskStatus.COMPLETED,
)


def parse_update_status(value: str) -> TaskStatus:
    try:
        status = TaskStatus(value)
    except ValueError:
        raise ValidationFailed("Invalid status value.") from None
    if status not in UPDATABLE_STATUSES:
        raise ValidationFailed("Invalid status value.")
    return status


def parse_priority(value: Optional[str]) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise ValidationFailed("Priority must be one of: low, medium, high, critical.") from None


def ensure_not_deleted(task: Task) -> None:
    """Deleted is terminal; no update path leaves it."""
    if task.status == TaskStatus.DELETED:
        raise Conflict(f"Task {task.task_id} has been deleted")


def status_fields(status: TaskStatus, now: datetime) -> Dict[str, Any]:
    """Columns written for a status transition."""
    fields: Dict[str, Any] = {"status": status.value}
    if status == TaskStatus.COMPLETED:
        fields["completed_at"] = now
    return fields


def reassignment_fields(new_assignee: str) -> Dict[str, Any]:
    """Reassignment always restarts the task."""
    return {"assigned_to": new_assignee, "status": TaskStatus.PENDING.value}


def comment_entry(text: str, author_name: str, now: datetime) -> Optional[Dict[str, Any]]:
    """Comment stored with the author's name as a plain-string snapshot."""
    if text is None or not text.strip():
        return None
    return {"text": text.strip(), "author": author_name, "created_at": now.isoformat()}
