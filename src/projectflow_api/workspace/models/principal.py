"""
Principal Model

The authenticated actor of a request, derived from either account variant.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.models.account import Account
from projectflow_api.workspace.models.account import EmployeeAccount


class Principal(BaseModel):
    """Company-scoped, role-bearing caller."""

    account_id: UUID
    kind: AccountKind
    role: Role
    company_name: str
    display_name: str
    email: str
    team_member_id: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account) -> "Principal":
        return cls(
            account_id=account.account_id,
            kind=account.kind,
            role=account.role,
            company_name=account.company_name,
            display_name=account.display_name,
            email=account.email,
            team_member_id=account.team_member_id if isinstance(account, EmployeeAccount) else None,
        )

    @property
    def actor_ref(self) -> str:
        """Stable reference used for comment authorship."""
        return self.team_member_id or str(self.account_id)
