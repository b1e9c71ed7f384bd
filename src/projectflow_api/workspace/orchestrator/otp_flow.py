"""
Password reset by emailed one-time code, for owners and employees alike.
"""

from typing import Optional

from loguru import logger

from projectflow_api.auth.passwords import hash_password
from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import NotificationType
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.account import Account
from projectflow_api.workspace.notifications import templates
from projectflow_api.workspace.notifications.email_sender import notify
from projectflow_api.workspace.orchestrator.common import find_account_by_email
from projectflow_api.workspace.orchestrator.common import update_account
from projectflow_api.workspace.orchestrator.common import utcnow
from projectflow_api.workspace.security import otp


async def _account(store, email: str) -> Account:
    account = await find_account_by_email(store, email)
    if account is None:
        raise NotFound("Account not found")
    return account


async def send_otp(store, email: str, settings: Settings, email_sender) -> None:
    """Issue a fresh code (replacing any pending one) and email it."""
    account = await _account(store, email)
    code = otp.generate_otp()
    await update_account(store, account, otp.issue_fields(code, utcnow(), settings.otp_ttl_minutes))
    logger.info("Password reset OTP issued", kind=account.kind.value, company_name=account.company_name)

    subject, body = templates.password_reset_otp(code, settings.otp_ttl_minutes)
    await notify(
        store,
        email_sender,
        NotificationType.PASSWORD_RESET_OTP,
        account.email,
        subject,
        body,
        company_name=account.company_name,
    )


async def verify_otp(store, email: str, code: str) -> None:
    """
    Check the pending code.

    A match clears the code and stamps the verification; a miss leaves the
    pending code untouched.
    """
    account = await _account(store, email)
    now = utcnow()
    if not otp.is_valid(account, code, now):
        logger.warning("Invalid OTP attempt", kind=account.kind.value, company_name=account.company_name)
        raise ValidationFailed("Invalid or expired OTP")
    await update_account(store, account, otp.verify_fields(now))


async def reset_password(
    store, email: str, new_password: str, settings: Settings, confirm_password: Optional[str] = None
) -> None:
    """Set a new password after a verification younger than the OTP window."""
    account = await _account(store, email)
    if not otp.can_reset(account, utcnow(), settings.otp_ttl_minutes):
        raise Forbidden("Please verify the OTP before resetting your password")
    otp.check_new_password(new_password, confirm_password)

    fields = otp.reset_fields(hash_password(new_password))
    if account.kind == AccountKind.EMPLOYEE:
        fields.update({"must_change_password": False, "password_expires_at": None})
    await update_account(store, account, fields)
    logger.info("Password reset completed", kind=account.kind.value, company_name=account.company_name)
