"""
ProjectFlow Workspace Module

Domain layer of the multi-tenant project-management service:
- Owner and employee accounts, teams and the role matrix
- Project aggregates with embedded phases, subtasks and comments
- Task lifecycle, OTP password reset and two-factor authentication
- Activity log and the periodic reaper
"""

__version__ = "1.0.0"
