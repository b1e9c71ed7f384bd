"""
Activity Model

Immutable audit entry, company-scoped.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from projectflow_api.workspace.enums import ActivityAction
from projectflow_api.workspace.enums import EntityType


class Activity(BaseModel):
    """Activity log record (append-only)."""

    activity_id: UUID
    entity_type: EntityType
    action: ActivityAction
    name: str
    description: Optional[str] = None
    performed_by: str
    company_name: str
    created_at: datetime

    class Config:
        from_attributes = True
