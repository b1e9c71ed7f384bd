####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Union
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import EmailStr
from pydantic import Field
from pydantic import field_validator

from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.models.account import Account
from projectflow_api.workspace.models.account import EmployeeAccount


def _strip_required(value: str) -> str:
    if value is None or not value.strip():
        raise ValueError("must not be empty")
    return value.strip()


# ---------------------------------------------------------------------------
# Account views (credentials, OTP and 2FA secrets never leave the service)
# ---------------------------------------------------------------------------


class OwnerProfile(BaseModel):
    """Public view of an owner account."""

    account_id: UUID
    kind: AccountKind
    role: Role
    email: str
    first_name: str
    last_name: str = ""
    phone_no: Optional[str] = None
    company_name: str
    company_domain: str
    company_id: str
    company_address: str
    founded_year: Optional[int] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    company_logo: Optional[str] = None
    account_status: str
    account_type: str
    two_factor_enabled: bool = False
    settings: Dict[str, Any] = Field(default_factory=dict)
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class EmployeeProfile(BaseModel):
    """Public view of an employee account."""

    account_id: UUID
    kind: AccountKind
    role: Role
    email: str
    name: str
    team_member_id: str
    phone_no: Optional[str] = None
    company_name: str
    designation: Optional[str] = None
    location: Optional[str] = None
    profile_logo: Optional[str] = None
    must_change_password: bool = False
    password_expires_at: Optional[datetime] = None
    two_factor_enabled: bool = False
    settings: Dict[str, Any] = Field(default_factory=dict)
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


def profile_of(account: Account) -> Union[OwnerProfile, EmployeeProfile]:
    """Strip an account down to its public fields."""
    if isinstance(account, EmployeeAccount):
        return EmployeeProfile(**account.model_dump())
    return OwnerProfile(**account.model_dump())


# ---------------------------------------------------------------------------
# Registration, login, profile
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Owner registration; creates the tenant."""

    first_name: str
    last_name: str = ""
    email: EmailStr
    phone_no: Optional[str] = None
    company_name: str
    company_domain: str
    company_id: str
    company_address: str
    founded_year: Optional[int] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    account_type: Optional[str] = None
    password: str
    confirm_password: str

    _required = field_validator("first_name", "company_name", "company_domain", "company_id", "company_address")(
        _strip_required
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "first_name": "Ada",
                "last_name": "Lovelace",
                "email": "ada@webblaze.io",
                "phone_no": "+44 20 7946 0000",
                "company_name": "Web Blaze",
                "company_domain": "webblaze.io",
                "company_id": "WB-2024",
                "company_address": "1 Analytical Way, London",
                "password": "s3cret-pass",
                "confirm_password": "s3cret-pass",
            }
        }
    )


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    """A token, or a two-factor challenge when 2FA is enabled."""

    message: str
    token: Optional[str] = None
    requires_two_factor: bool = False
    challenge_token: Optional[str] = None
    account_id: UUID
    kind: AccountKind
    user: Optional[Union[OwnerProfile, EmployeeProfile]] = None


class ProfileUpdateRequest(BaseModel):
    """Profile edit; fields not applicable to the caller's account kind are ignored."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_no: Optional[str] = None
    company_name: Optional[str] = None
    company_domain: Optional[str] = None
    company_address: Optional[str] = None
    founded_year: Optional[int] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    company_logo: Optional[str] = None
    account_type: Optional[str] = None
    designation: Optional[str] = None
    location: Optional[str] = None
    profile_logo: Optional[str] = None


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


class EmployeeCreateRequest(BaseModel):
    name: str
    email: EmailStr
    phone_no: str
    role: Optional[str] = None
    designation: Optional[str] = None
    location: Optional[str] = None
    profile_logo: Optional[str] = None

    _required = field_validator("name", "phone_no")(_strip_required)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Grace Hopper",
                "email": "grace@webblaze.io",
                "phone_no": "+1 555 0100",
                "role": "teamLead",
                "designation": "Engineering Lead",
            }
        }
    )


class EmployeeUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_no: Optional[str] = None
    role: Optional[str] = None
    designation: Optional[str] = None
    location: Optional[str] = None
    profile_logo: Optional[str] = None


class FirstLoginRequest(BaseModel):
    """Replaces the temporary password of a new employee."""

    email: str
    old_password: str
    new_password: str
    confirm_password: str


class RoleInfo(BaseModel):
    value: str
    label: str


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


class TeamCreateRequest(BaseModel):
    team_name: str
    description: Optional[str] = None
    team_lead: str
    members: List[str] = Field(default_factory=list)


class TeamUpdateRequest(BaseModel):
    description: Optional[str] = None
    team_lead: Optional[str] = None
    members: Optional[List[str]] = None


class TeamDetailsResponse(BaseModel):
    team_id: UUID
    team_name: str
    description: Optional[str] = None
    team_lead: Optional[EmployeeProfile] = None
    members: List[EmployeeProfile] = Field(default_factory=list)
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# OTP password reset
# ---------------------------------------------------------------------------


class ForgotPasswordRequest(BaseModel):
    email: str


class VerifyOtpRequest(BaseModel):
    email: str
    otp: str


class ResetPasswordRequest(BaseModel):
    email: str
    new_password: str
    confirm_password: Optional[str] = None


# ---------------------------------------------------------------------------
# Two-factor authentication
# ---------------------------------------------------------------------------


class TwoFactorCodeRequest(BaseModel):
    """A six digit code from the authenticator app."""

    code: str


class TwoFactorVerifyRequest(BaseModel):
    """Second login step: TOTP or backup code, bound to the login challenge."""

    challenge_token: str
    code: str
    remember_device: bool = False
    device_name: Optional[str] = None


class DeviceValidateRequest(BaseModel):
    challenge_token: str
    device_token: str


class SecondFactorResponse(BaseModel):
    message: str
    token: str
    device_token: Optional[str] = None
    device_id: Optional[str] = None
    user: Union[OwnerProfile, EmployeeProfile]


class MessageResponse(BaseModel):
    message: str
