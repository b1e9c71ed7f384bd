"""
Account Models

Owner and employee accounts. Both variants share the credential, OTP and
two-factor fields so the OTP and 2FA flows are written once against ``Account``.
"""

from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic import Field

from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import AccountStatus
from projectflow_api.workspace.enums import Role


class TrustedDevice(BaseModel):
    """A client allowed to skip the second factor until ``expires_at``."""

    device_id: str
    device_name: str = "Unknown device"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    last_used: Optional[datetime] = None


class Account(BaseModel):
    """Fields common to owners and employees."""

    account_id: UUID
    kind: AccountKind
    email: str
    password_hash: str
    role: Role
    company_name: str
    phone_no: Optional[str] = None

    # Password reset
    reset_otp: Optional[str] = None
    reset_otp_expiry: Optional[datetime] = None
    otp_verified_at: Optional[datetime] = None

    # Two-factor state; two_factor_enabled mirrors settings["security"]["two_factor_auth"]
    two_factor_enabled: bool = False
    two_factor_secret: Optional[str] = None
    backup_codes: List[str] = Field(default_factory=list)
    trusted_devices: List[TrustedDevice] = Field(default_factory=list)

    settings: Dict[str, Any] = Field(default_factory=dict)
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def display_name(self) -> str:
        return self.email


class OwnerAccount(Account):
    """Company owner, created at registration. One per tenant."""

    kind: AccountKind = AccountKind.OWNER
    role: Role = Role.OWNER
    first_name: str
    last_name: str = ""
    company_domain: str
    company_id: str
    company_address: str
    founded_year: Optional[int] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    company_logo: Optional[str] = None
    account_status: AccountStatus = AccountStatus.INACTIVE
    account_type: str = "Standard"

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class EmployeeAccount(Account):
    """Employee created by an authorized principal, with a temporary password."""

    kind: AccountKind = AccountKind.EMPLOYEE
    name: str
    team_member_id: str
    designation: Optional[str] = None
    location: Optional[str] = None
    profile_logo: Optional[str] = None
    must_change_password: bool = True
    password_expires_at: Optional[datetime] = None
    added_by: Optional[UUID] = None

    @property
    def display_name(self) -> str:
        return self.name

    def temporary_password_expired(self, now: datetime) -> bool:
        """True when the first-login window has elapsed without a password change."""
        return (
            self.must_change_password and self.password_expires_at is not None and now > self.password_expires_at
        )
