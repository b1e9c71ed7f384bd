"""
Workspace Orchestrator Module

Request-level flows: each checks the caller's role, applies the domain rules,
writes through the store and records activity.
"""

from projectflow_api.workspace.orchestrator import account_flow
from projectflow_api.workspace.orchestrator import employee_flow
from projectflow_api.workspace.orchestrator import otp_flow
from projectflow_api.workspace.orchestrator import project_flow
from projectflow_api.workspace.orchestrator import task_flow
from projectflow_api.workspace.orchestrator import team_flow
from projectflow_api.workspace.orchestrator import two_factor_flow
from projectflow_api.workspace.orchestrator.common import recent_activity

__all__ = [
    "account_flow",
    "employee_flow",
    "otp_flow",
    "project_flow",
    "task_flow",
    "team_flow",
    "two_factor_flow",
    "recent_activity",
]
