"""
Owner registration, unified login, profile and settings.

Login checks the owners table first, then employees. Accounts with two-factor
authentication enabled get a short-lived challenge token instead of a session;
the second step happens in ``two_factor_flow``.
"""

import copy
from typing import Any
from typing import Dict
from typing import Optional

from loguru import logger
from pydantic import BaseModel

from projectflow_api.auth.passwords import hash_password
from projectflow_api.auth.passwords import verify_password
from projectflow_api.auth.tokens import create_challenge_token
from projectflow_api.auth.tokens import create_login_token
from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import AccountStatus
from projectflow_api.workspace.enums import NotificationType
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.exceptions import AuthenticationFailed
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.account import Account
from projectflow_api.workspace.models.account import EmployeeAccount
from projectflow_api.workspace.models.account import OwnerAccount
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.notifications import templates
from projectflow_api.workspace.notifications.email_sender import notify
from projectflow_api.workspace.orchestrator.common import account_from_row
from projectflow_api.workspace.orchestrator.common import email_taken
from projectflow_api.workspace.orchestrator.common import load_principal_account
from projectflow_api.workspace.orchestrator.common import send_login_alert
from projectflow_api.workspace.orchestrator.common import update_account
from projectflow_api.workspace.orchestrator.common import utcnow
from projectflow_api.workspace.security import otp
from projectflow_api.workspace.security import two_factor

DUPLICATE_MESSAGES = {
    "email": "Email already registered",
    "company_name": "Company already registered",
    "company_domain": "Company Domain already registered",
    "company_id": "Company ID already registered",
}

OWNER_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone_no",
    "company_domain",
    "company_address",
    "founded_year",
    "website",
    "industry",
    "company_logo",
    "account_type",
)

EMPLOYEE_PROFILE_FIELDS = ("name", "phone_no", "designation", "location", "profile_logo")

SETTINGS_SECTIONS = ("notifications", "appearance", "security", "privacy")


class LoginOutcome(BaseModel):
    """Result of a password login."""

    account: Account
    token: Optional[str] = None
    requires_two_factor: bool = False
    challenge_token: Optional[str] = None


async def register_owner(store, data: Dict[str, Any], settings: Settings, email_sender) -> OwnerAccount:
    """
    Create a tenant and its owner account.

    Email, company name, company domain and company id must all be unused.
    The account starts inactive and is activated by its first login.
    """
    otp.check_new_password(data.get("password"), data.get("confirm_password"))

    duplicate = await store.owners.find_duplicate(
        {column: data.get(column) for column in ("email", "company_name", "company_domain", "company_id")}
    )
    if duplicate is not None:
        raise Conflict(DUPLICATE_MESSAGES[duplicate])
    if await store.employees.get_by_email(data["email"]) is not None:
        raise Conflict(DUPLICATE_MESSAGES["email"])

    row = await store.owners.create(
        {
            "email": data["email"],
            "password_hash": hash_password(data["password"]),
            "role": Role.OWNER.value,
            "first_name": data["first_name"],
            "last_name": data.get("last_name") or "",
            "phone_no": data.get("phone_no"),
            "company_name": data["company_name"],
            "company_domain": data["company_domain"],
            "company_id": data["company_id"],
            "company_address": data["company_address"],
            "founded_year": data.get("founded_year"),
            "website": data.get("website"),
            "industry": data.get("industry"),
            "account_status": AccountStatus.INACTIVE.value,
            "account_type": data.get("account_type") or "Standard",
        }
    )
    owner = account_from_row(AccountKind.OWNER, row)
    logger.info("Owner registered", company_name=owner.company_name, account_id=str(owner.account_id))

    subject, body = templates.owner_welcome(owner.first_name, owner.company_name)
    await notify(
        store, email_sender, NotificationType.OWNER_WELCOME, owner.email, subject, body, company_name=owner.company_name
    )
    return owner


async def _check_owner_credentials(store, owner: OwnerAccount, password: str) -> OwnerAccount:
    if not verify_password(password, owner.password_hash):
        raise AuthenticationFailed("Incorrect password")
    if owner.account_status == AccountStatus.INACTIVE:
        owner = await update_account(store, owner, {"account_status": AccountStatus.ACTIVE.value})
        logger.info("Owner account activated", company_name=owner.company_name)
    return owner


def _check_employee_credentials(employee: EmployeeAccount, password: str) -> None:
    if employee.temporary_password_expired(utcnow()):
        raise Forbidden("Temporary password has expired. Please contact your administrator.")
    if not verify_password(password, employee.password_hash):
        raise AuthenticationFailed("Incorrect password")
    if employee.must_change_password:
        raise Forbidden("Please update your password before logging in")


async def login(
    store,
    email: str,
    password: str,
    settings: Settings,
    email_sender,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> LoginOutcome:
    """
    Password login for owners and employees.

    Raises
    ------
    NotFound
        No account uses ``email``.
    AuthenticationFailed
        Wrong password.
    Forbidden
        Employee whose temporary password expired or was never changed.
    """
    row = await store.owners.get_by_email(email)
    if row is not None:
        account = await _check_owner_credentials(store, account_from_row(AccountKind.OWNER, row), password)
    else:
        row = await store.employees.get_by_email(email)
        if row is None:
            raise NotFound("User not found")
        account = account_from_row(AccountKind.EMPLOYEE, row)
        _check_employee_credentials(account, password)

    if two_factor.is_enabled(account):
        logger.info("Password accepted, second factor required", account_id=str(account.account_id))
        return LoginOutcome(
            account=account,
            requires_two_factor=True,
            challenge_token=create_challenge_token(account.account_id, account.kind, settings),
        )

    account = await update_account(store, account, {"last_login": utcnow()})
    await send_login_alert(store, email_sender, account, ip_address, user_agent)
    logger.info("Login successful", account_id=str(account.account_id), kind=account.kind.value)
    return LoginOutcome(account=account, token=create_login_token(account.account_id, account.kind, settings))


async def get_profile(store, principal: Principal) -> Account:
    return await load_principal_account(store, principal)


async def update_profile(store, principal: Principal, data: Dict[str, Any]) -> Account:
    """Owners edit their own and their company's details; employees their own. Company name never changes."""
    if "company_name" in data and data["company_name"] != principal.company_name:
        raise ValidationFailed("Company name cannot be changed")

    allowed = OWNER_PROFILE_FIELDS if principal.kind == AccountKind.OWNER else EMPLOYEE_PROFILE_FIELDS
    fields = {key: value for key, value in data.items() if key in allowed and value is not None}
    if not fields:
        raise ValidationFailed("No valid update fields provided")

    account = await load_principal_account(store, principal)
    if "email" in fields and fields["email"].lower() != account.email.lower():
        if await email_taken(store, fields["email"]):
            raise Conflict("Email already registered")
    if "company_domain" in fields and fields["company_domain"] != getattr(account, "company_domain", None):
        if await store.owners.find_duplicate({"company_domain": fields["company_domain"]}) is not None:
            raise Conflict(DUPLICATE_MESSAGES["company_domain"])

    updated = await update_account(store, account, fields)
    logger.info("Profile updated", account_id=str(updated.account_id), fields=sorted(fields))
    return updated


async def update_settings(store, principal: Principal, section: str, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``values`` into one settings section and return the section.

    The two-factor flag inside the security section is owned by the two-factor
    flow and is never changed here.
    """
    if section not in SETTINGS_SECTIONS:
        raise NotFound("Settings section not found")

    account = await load_principal_account(store, principal)
    settings = copy.deepcopy(account.settings)
    current = dict(settings.get(section) or {})
    updates = dict(values)
    if section == "security":
        updates.pop("two_factor_auth", None)
        current["two_factor_auth"] = two_factor.is_enabled(account)
    current.update(updates)
    settings[section] = current

    await update_account(store, account, {"settings": settings})
    logger.info("Settings updated", account_id=str(account.account_id), section=section)
    return current
