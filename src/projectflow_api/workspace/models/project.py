"""
Project Aggregate

A project owns its phases; each phase owns its subtasks and comments. All
mutation of the embedded hierarchy goes through the aggregate methods so that
sibling data is never lost and the lookup policy (identifier first, title as
fallback) lives in one place.
"""

from datetime import datetime
from typing import List
from typing import Optional
from typing import Tuple

from pydantic import BaseModel
from pydantic import Field

from projectflow_api.workspace.enums import ProjectStatus
from projectflow_api.workspace.enums import WorkItemStatus
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed


class PhaseComment(BaseModel):
    """Comment on a phase. ``author_name`` is a snapshot taken at write time."""

    text: str
    author_id: str
    author_name: str
    created_at: datetime


class Subtask(BaseModel):
    """Subtask embedded in a phase."""

    subtask_id: str
    subtask_title: str
    description: Optional[str] = None
    assigned_team: Optional[str] = None
    assigned_member: Optional[str] = None
    status: WorkItemStatus = WorkItemStatus.PENDING
    images: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class Phase(BaseModel):
    """Phase embedded in a project."""

    phase_id: str
    title: str
    description: Optional[str] = None
    due_date: str
    status: WorkItemStatus = WorkItemStatus.PENDING
    comments: List[PhaseComment] = Field(default_factory=list)
    subtasks: List[Subtask] = Field(default_factory=list)

    def next_subtask_id(self) -> str:
        """
        Next subtask identifier for this phase.

        The number is one above both the highest existing suffix and the
        subtask count, so removing a subtask from the middle never hands a
        live identifier to a new subtask.
        """
        highest = 0
        for subtask in self.subtasks:
            suffix = subtask.subtask_id.rsplit("-", 1)[-1]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{self.phase_id}-{max(highest, len(self.subtasks)) + 1}"


class Project(BaseModel):
    """Project aggregate root."""

    project_id: str
    project_name: str
    client_name: str
    project_description: str
    start_date: str
    end_date: str
    project_status: ProjectStatus = ProjectStatus.ONGOING
    project_lead: str
    team_members: List[str] = Field(default_factory=list)
    team_name: Optional[str] = None
    completion_note: Optional[str] = None
    original_end_date: Optional[str] = None
    phases: List[Phase] = Field(default_factory=list)
    company_name: str
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    class Config:
        from_attributes = True

    # ── phases ──────────────────────────────────────────────────────────────

    def find_phase(self, phase_id: Optional[str] = None, title: Optional[str] = None) -> Optional[Phase]:
        """Locate a phase by identifier, falling back to title."""
        if phase_id:
            for phase in self.phases:
                if phase.phase_id == phase_id:
                    return phase
        if title:
            for phase in self.phases:
                if phase.title == title:
                    return phase
        return None

    def get_phase(self, phase_id: Optional[str] = None, title: Optional[str] = None) -> Phase:
        phase = self.find_phase(phase_id, title)
        if phase is None:
            raise NotFound("Phase not found")
        return phase

    def add_phase(self, phase_id: str, title: str, due_date: str, description: Optional[str] = None) -> Phase:
        phase = Phase(phase_id=phase_id, title=title, due_date=due_date, description=description)
        self.phases.append(phase)
        return phase

    def set_phase_status(self, status: str, phase_id: Optional[str] = None, title: Optional[str] = None) -> Phase:
        phase = self.get_phase(phase_id, title)
        phase.status = parse_work_item_status(status)
        return phase

    def remove_phase(self, phase_id: Optional[str] = None, title: Optional[str] = None) -> Phase:
        """
        Remove a phase by identifier or title.

        Raises
        ------
        NotFound
            When no phase matched (the phase list length is unchanged).
        """
        phase = self.find_phase(phase_id, title)
        remaining = [p for p in self.phases if p is not phase]
        if phase is None or len(remaining) == len(self.phases):
            raise NotFound("Phase not found")
        self.phases = remaining
        return phase

    # ── subtasks ────────────────────────────────────────────────────────────

    def find_subtask(self, subtask_id: str) -> Tuple[Optional[Phase], Optional[Subtask]]:
        """Locate a subtask anywhere in the phase list."""
        for phase in self.phases:
            for subtask in phase.subtasks:
                if subtask.subtask_id == subtask_id:
                    return phase, subtask
        return None, None

    def get_subtask(self, subtask_id: str) -> Tuple[Phase, Subtask]:
        phase, subtask = self.find_subtask(subtask_id)
        if subtask is None:
            raise NotFound("Subtask not found")
        return phase, subtask

    def add_subtask(
        self,
        phase: Phase,
        subtask_title: str,
        now: datetime,
        description: Optional[str] = None,
        assigned_team: Optional[str] = None,
        assigned_member: Optional[str] = None,
        images: Optional[List[str]] = None,
    ) -> Subtask:
        subtask = Subtask(
            subtask_id=phase.next_subtask_id(),
            subtask_title=subtask_title,
            description=description,
            assigned_team=assigned_team,
            assigned_member=assigned_member,
            images=list(images or []),
            created_at=now,
            updated_at=now,
        )
        phase.subtasks.append(subtask)
        return subtask

    def set_subtask_status(self, subtask_id: str, status: str, now: datetime) -> Subtask:
        _, subtask = self.get_subtask(subtask_id)
        subtask.status = parse_work_item_status(status)
        subtask.updated_at = now
        return subtask

    def remove_subtask(self, subtask_id: str) -> Subtask:
        phase, subtask = self.get_subtask(subtask_id)
        phase.subtasks = [s for s in phase.subtasks if s.subtask_id != subtask_id]
        return subtask

    # ── comments and images ─────────────────────────────────────────────────

    def add_comment(self, phase: Phase, text: str, author_id: str, author_name: str, now: datetime) -> PhaseComment:
        if not text or not text.strip():
            raise ValidationFailed("Comment text is required")
        comment = PhaseComment(text=text.strip(), author_id=author_id, author_name=author_name, created_at=now)
        phase.comments.append(comment)
        return comment

    def image_urls(self) -> List[str]:
        """All image references attached to any subtask of the project."""
        return [url for phase in self.phases for subtask in phase.subtasks for url in subtask.images]


def parse_work_item_status(status: str) -> WorkItemStatus:
    """Validate a phase/subtask status value."""
    try:
        return WorkItemStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in WorkItemStatus)
        raise ValidationFailed(f"Invalid status. Must be one of: {allowed}") from None
