"""
Task Model

Standalone task assigned to an employee by team member id.
"""

from datetime import datetime
from typing import List
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic import Field

from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.enums import TaskPriority
from projectflow_api.workspace.enums import TaskStatus


class TaskComment(BaseModel):
    """Comment appended to a task; ``author`` is the name at write time."""

    text: str
    author: str
    created_at: datetime


class Task(BaseModel):
    """Task database model."""

    task_id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: str
    assigned_by: UUID
    assigned_by_role: Role
    project_id: str
    priority: TaskPriority
    due_date: str
    deleted_reason: Optional[str] = None
    deleted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    comments: List[TaskComment] = Field(default_factory=list)
    company_name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
