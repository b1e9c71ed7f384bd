"""
Project, phase, subtask and task request models.

Subtask create/edit arrive as multipart forms and are read directly in the
routes; everything else is JSON.
"""

from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator

# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectCreateRequest(BaseModel):
    """Request model for creating a project."""

    project_name: str
    client_name: str
    project_description: str
    start_date: str
    end_date: str
    project_status: Optional[str] = None
    project_lead: str
    team_members: List[str] = Field(default_factory=list)
    team_name: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "project_name": "Website Relaunch",
                "client_name": "Acme Ltd",
                "project_description": "New marketing site and CMS",
                "start_date": "2025-01-06",
                "end_date": "2025-03-28",
                "project_lead": "WB-002",
                "team_members": ["WB-003", "WB-004"],
                "team_name": "Web",
            }
        }
    )


class ProjectUpdateRequest(BaseModel):
    """Partial project edit; membership changes go through add/remove lists."""

    project_name: Optional[str] = None
    client_name: Optional[str] = None
    project_description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    project_status: Optional[str] = None
    project_lead: Optional[str] = None
    team_name: Optional[str] = None
    add_members: List[str] = Field(default_factory=list)
    remove_members: List[str] = Field(default_factory=list)


class ProjectRef(BaseModel):
    """Identifies a project by id, falling back to its name."""

    project_id: Optional[str] = None
    project_name: Optional[str] = None

    @model_validator(mode="after")
    def require_reference(self):
        if not self.project_id and not self.project_name:
            raise ValueError("project_id or project_name is required")
        return self


# ---------------------------------------------------------------------------
# Phases and subtasks
# ---------------------------------------------------------------------------


class PhaseAddRequest(ProjectRef):
    title: str
    description: Optional[str] = None
    due_date: str


class PhaseStatusRequest(ProjectRef):
    phase_id: Optional[str] = None
    phase_title: Optional[str] = None
    status: str


class PhaseDeleteRequest(ProjectRef):
    phase_id: Optional[str] = None
    title: Optional[str] = None


class SubtaskStatusRequest(BaseModel):
    subtask_id: str
    status: str


class SubtaskDeleteRequest(BaseModel):
    subtask_id: str


class CommentRequest(BaseModel):
    text: str


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreateRequest(BaseModel):
    """Required fields are checked by the task flow so that each gets its own message."""

    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    project_id: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Build landing page",
                "description": "Hero, pricing and footer sections",
                "assigned_to": "WB-003",
                "project_id": "WB-Pr-1",
                "priority": "high",
                "due_date": "2025-02-14",
            }
        }
    )


class TaskUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    assigned_to: Optional[str] = None
    project_id: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    comment: Optional[str] = None


class TaskDeleteRequest(BaseModel):
    reason: Optional[str] = None


class TaskBatchUpdateRequest(BaseModel):
    """Applied to every non-deleted task of one assignee."""

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    new_assigned_to: Optional[str] = None
    project_id: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    comment: Optional[str] = None
