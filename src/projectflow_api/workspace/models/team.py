"""
Team Model

Named grouping with one lead (role teamLead) and members (role teamMember),
referenced by their human-readable team member ids.
"""

from datetime import datetime
from typing import List
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic import Field


class Team(BaseModel):
    """Team database model."""

    team_id: UUID
    team_name: str
    description: Optional[str] = None
    team_lead: str
    members: List[str] = Field(default_factory=list)
    created_by: UUID
    company_name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
