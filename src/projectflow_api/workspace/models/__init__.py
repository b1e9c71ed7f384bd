"""
Workspace Models Module

Pydantic models for the workspace domain:
- Accounts (owners and employees) with OTP and two-factor state
- Teams, tasks and activity records
- The project aggregate with embedded phases, subtasks and comments
"""

from projectflow_api.workspace.models.account import Account, EmployeeAccount, OwnerAccount, TrustedDevice
from projectflow_api.workspace.models.activity import Activity
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.models.project import Phase, PhaseComment, Project, Subtask
from projectflow_api.workspace.models.task import Task, TaskComment
from projectflow_api.workspace.models.team import Team

__all__ = [
    # Accounts
    "Account",
    "OwnerAccount",
    "EmployeeAccount",
    "TrustedDevice",
    # Projects
    "Project",
    "Phase",
    "Subtask",
    "PhaseComment",
    # Tasks
    "Task",
    "TaskComment",
    # Directory and audit
    "Principal",
    "Team",
    "Activity",
]
