"""
Workspace Enums

All enum types used throughout the workspace domain.
Values must match exactly with the values persisted in the database.
"""

from enum import Enum


# ════════════════════════════════════════════════════════════════════════════
# Identity Enums
# ════════════════════════════════════════════════════════════════════════════


class AccountKind(str, Enum):
    """Which account table a principal lives in."""

    OWNER = "owner"
    EMPLOYEE = "employee"


class Role(str, Enum):
    """Roles of the authorization matrix."""

    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    TEAM_LEAD = "teamLead"
    TEAM_MEMBER = "teamMember"

# Roles an employee record may carry
EMPLOYEE_ROLES = (Role.ADMIN, Role.MANAGER, Role.TEAM_LEAD, Role.TEAM_MEMBER)


class AccountStatus(str, Enum):
    """Owner account status. Flips to active on the first successful login."""

    INACTIVE = "inactive"
    ACTIVE = "active"


# ════════════════════════════════════════════════════════════════════════════
# Project Enums
# ════════════════════════════════════════════════════════════════════════════


class ProjectStatus(str, Enum):
    """Project status. DELETED marks a soft delete awaiting the reaper."""

    ONGOING = "ongoing"
    COMPLETED = "completed"
    ON_HOLD = "on hold"
    DELETED = "deleted"


class WorkItemStatus(str, Enum):
    """Status shared by phases and subtasks."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"

# Assigned-team value of a subtask with no team
UNASSIGNED_TEAM = "unassigned"


# ════════════════════════════════════════════════════════════════════════════
# Task Enums
# ════════════════════════════════════════════════════════════════════════════


class TaskStatus(str, Enum):
    """Task lifecycle states. DELETED is terminal."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    VERIFICATION = "verification"
    COMPLETED = "completed"
    DELETED = "deleted"

# States listed by the "ongoing tasks" view
ONGOING_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.VERIFICATION)

# States listed by the task history view
HISTORY_TASK_STATUSES = (TaskStatus.COMPLETED, TaskStatus.DELETED)


class TaskPriority(str, Enum):
    """Task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ════════════════════════════════════════════════════════════════════════════
# Activity and Notification Enums
# ════════════════════════════════════════════════════════════════════════════


class EntityType(str, Enum):
    """Entity types recorded in the activity log."""

    EMPLOYEE = "Employee"
    TEAM = "Team"
    PROJECT = "Project"
    TASK = "Task"


class ActivityAction(str, Enum):
    """Actions recorded in the activity log."""

    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    PERMANENTLY_DELETE = "permanently_delete"


class NotificationType(str, Enum):
    """Email notification types kept in the outbox."""

    OWNER_WELCOME = "OWNER_WELCOME"
    EMPLOYEE_WELCOME = "EMPLOYEE_WELCOME"
    PASSWORD_RESET_OTP = "PASSWORD_RESET_OTP"
    LOGIN_ALERT = "LOGIN_ALERT"


# ════════════════════════════════════════════════════════════════════════════
# Identifier Sequence Kinds
# ════════════════════════════════════════════════════════════════════════════


class SequenceKind(str, Enum):
    """Per-tenant counters backing human-readable identifiers."""

    EMPLOYEE = "employee"
    PROJECT = "project"
    PHASE = "phase"
    TASK = "task"
