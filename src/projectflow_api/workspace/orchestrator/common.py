"""
Helpers shared by the workspace flows.

Row-to-model conversion for both account kinds, account lookup across the
two identity tables, activity recording and identifier reservation.
"""

from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from uuid import UUID

from loguru import logger

from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import ActivityAction
from projectflow_api.workspace.enums import EntityType
from projectflow_api.workspace.enums import NotificationType
from projectflow_api.workspace.enums import SequenceKind
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.models.account import Account
from projectflow_api.workspace.models.account import EmployeeAccount
from projectflow_api.workspace.models.account import OwnerAccount
from projectflow_api.workspace.models.activity import Activity
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.notifications import templates
from projectflow_api.workspace.notifications.email_sender import notify
from projectflow_api.workspace.rules.identifiers import format_identifier
from projectflow_api.workspace.rules.identifiers import highest_suffix


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def account_from_row(kind: AccountKind, row: Dict[str, Any]) -> Account:
    """Build the account model for a row of the owners or employees table."""
    if kind == AccountKind.OWNER:
        return OwnerAccount(**{**row, "kind": AccountKind.OWNER})
    return EmployeeAccount(**{**row, "kind": AccountKind.EMPLOYEE})


def accounts_repo(store, kind: AccountKind):
    return store.owners if kind == AccountKind.OWNER else store.employees


async def find_account_by_email(store, email: str) -> Optional[Account]:
    """Owners are checked first, then employees."""
    row = await store.owners.get_by_email(email)
    if row is not None:
        return account_from_row(AccountKind.OWNER, row)
    row = await store.employees.get_by_email(email)
    if row is not None:
        return account_from_row(AccountKind.EMPLOYEE, row)
    return None


async def email_taken(store, email: str) -> bool:
    return await find_account_by_email(store, email) is not None


async def load_account(store, kind: AccountKind, account_id: UUID) -> Account:
    row = await accounts_repo(store, kind).get_by_id(account_id)
    if row is None:
        raise NotFound("User not found")
    return account_from_row(kind, row)


async def load_principal_account(store, principal: Principal) -> Account:
    return await load_account(store, principal.kind, principal.account_id)


async def update_account(store, account: Account, fields: Dict[str, Any]) -> Account:
    row = await accounts_repo(store, account.kind).update_fields(account.account_id, fields)
    if row is None:
        raise NotFound("User not found")
    return account_from_row(account.kind, row)


async def record_activity(
    store,
    company_name: str,
    entity_type: EntityType,
    action: ActivityAction,
    name: str,
    performed_by: str,
    description: Optional[str] = None,
) -> None:
    await store.activities.create(
        company_name=company_name,
        entity_type=entity_type.value,
        action=action.value,
        name=name,
        performed_by=performed_by,
        description=description,
    )
    logger.debug(
        "Activity recorded",
        company_name=company_name,
        entity_type=entity_type.value,
        action=action.value,
        entity_name=name,
    )


async def reserve_identifier(
    store, kind: SequenceKind, company_name: str, existing: Iterable[str] = (), floor: Optional[int] = None
) -> str:
    """
    Reserve the next human-readable identifier of ``kind`` for a tenant.

    ``floor`` defaults to the highest numeric suffix among ``existing``, so a
    counter that is missing or behind never hands out a number already in use.
    """
    if floor is None:
        floor = highest_suffix(existing)
    number = await store.sequences.next_value(company_name, kind.value, floor)
    return format_identifier(kind, company_name, number)


async def send_login_alert(
    store, email_sender, account: Account, ip_address: Optional[str], user_agent: Optional[str]
) -> None:
    """Owners get a sign-in email unless they turned login notifications off."""
    if account.kind != AccountKind.OWNER:
        return
    security = account.settings.get("security") or {}
    if security.get("login_notifications") is False:
        return
    subject, body = templates.login_alert(account.display_name, utcnow(), ip_address, user_agent)
    await notify(
        store,
        email_sender,
        NotificationType.LOGIN_ALERT,
        account.email,
        subject,
        body,
        company_name=account.company_name,
    )


async def recent_activity(store, principal: Principal, limit: int = 20) -> List[Activity]:
    """Latest activity records of the caller's tenant, newest first."""
    rows = await store.activities.list_recent(principal.company_name, limit)
    return [Activity(**row) for row in rows]
