"""
Two-factor authentication: setup, enable/disable, the login second step,
backup codes and trusted devices.

The login second step is bound to a password check through the challenge
token issued by ``account_flow.login``.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID

from loguru import logger
from pydantic import BaseModel

from projectflow_api.auth.tokens import create_device_token
from projectflow_api.auth.tokens import create_session_token
from projectflow_api.auth.tokens import decode_challenge_token
from projectflow_api.auth.tokens import decode_device_token
from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.exceptions import AuthenticationFailed
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.account import Account
from projectflow_api.workspace.models.account import TrustedDevice
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator.common import accounts_repo
from projectflow_api.workspace.orchestrator.common import load_account
from projectflow_api.workspace.orchestrator.common import load_principal_account
from projectflow_api.workspace.orchestrator.common import send_login_alert
from projectflow_api.workspace.orchestrator.common import update_account
from projectflow_api.workspace.orchestrator.common import utcnow
from projectflow_api.workspace.security import two_factor


class TwoFactorSetup(BaseModel):
    secret: str
    otpauth_url: str
    qr_code: str
    backup_codes: List[str]


class SecondFactorOutcome(BaseModel):
    """Result of a successful second step."""

    account: Account
    token: str
    device_token: Optional[str] = None
    device_id: Optional[str] = None
    used_backup_code: bool = False


# ════════════════════════════════════════════════════════════════════════════
# Management (authenticated principal)
# ════════════════════════════════════════════════════════════════════════════


async def setup(store, principal: Principal, settings: Settings) -> TwoFactorSetup:
    """Generate a pending secret and a fresh batch of backup codes; 2FA stays disabled."""
    account = await load_principal_account(store, principal)
    if two_factor.is_enabled(account):
        raise ValidationFailed("Two-factor authentication is already enabled")

    secret = two_factor.generate_secret()
    backup_codes = two_factor.generate_backup_codes(settings.backup_code_count)
    await update_account(store, account, {"two_factor_secret": secret, "backup_codes": backup_codes})

    uri = two_factor.provisioning_uri(secret, account.email, settings.totp_issuer)
    logger.info("Two-factor setup generated", kind=account.kind.value, company_name=account.company_name)
    return TwoFactorSetup(
        secret=secret,
        otpauth_url=uri,
        qr_code=two_factor.qr_code_data_url(uri),
        backup_codes=backup_codes,
    )


async def enable(store, principal: Principal, code: str, settings: Settings) -> Account:
    account = await load_principal_account(store, principal)
    if two_factor.is_enabled(account):
        raise ValidationFailed("Two-factor authentication is already enabled")
    if not account.two_factor_secret:
        raise ValidationFailed("2FA not set up. Please generate setup first.")
    if not two_factor.verify_totp(account.two_factor_secret, code, settings.totp_valid_window):
        raise ValidationFailed("Invalid verification code")

    account = await update_account(store, account, two_factor.flag_fields(account, True))
    logger.info("Two-factor enabled", kind=account.kind.value, company_name=account.company_name)
    return account


async def disable(store, principal: Principal, code: str, settings: Settings) -> Account:
    """Turn 2FA off after a valid code; the secret, backup codes and trusted devices go with it."""
    account = await load_principal_account(store, principal)
    if not two_factor.is_enabled(account):
        raise ValidationFailed("2FA is not enabled")
    if not two_factor.verify_totp(account.two_factor_secret, code, settings.totp_valid_window):
        raise ValidationFailed("Invalid verification code")

    fields = two_factor.flag_fields(account, False)
    fields.update({"two_factor_secret": None, "backup_codes": [], "trusted_devices": []})
    account = await update_account(store, account, fields)
    logger.info("Two-factor disabled", kind=account.kind.value, company_name=account.company_name)
    return account


async def get_backup_codes(store, principal: Principal) -> List[str]:
    account = await load_principal_account(store, principal)
    return account.backup_codes


async def regenerate_backup_codes(store, principal: Principal, settings: Settings) -> List[str]:
    account = await load_principal_account(store, principal)
    backup_codes = two_factor.generate_backup_codes(settings.backup_code_count)
    await update_account(store, account, {"backup_codes": backup_codes})
    logger.info("Backup codes regenerated", kind=account.kind.value, company_name=account.company_name)
    return backup_codes


async def list_trusted_devices(store, principal: Principal) -> List[TrustedDevice]:
    """Active devices; expired ones are pruned from the account on the way."""
    account = await load_principal_account(store, principal)
    active = two_factor.active_devices(account.trusted_devices, utcnow())
    if len(active) != len(account.trusted_devices):
        await update_account(store, account, {"trusted_devices": two_factor.devices_payload(active)})
    return active


async def remove_trusted_device(store, principal: Principal, device_id: str) -> None:
    account = await load_principal_account(store, principal)
    if two_factor.find_device(account.trusted_devices, device_id) is None:
        raise NotFound("Device not found")
    remaining = [device for device in account.trusted_devices if device.device_id != device_id]
    await update_account(store, account, {"trusted_devices": two_factor.devices_payload(remaining)})


# ════════════════════════════════════════════════════════════════════════════
# Login second step
# ════════════════════════════════════════════════════════════════════════════


async def _challenged_account(store, challenge_token: str, settings: Settings) -> Account:
    claims = decode_challenge_token(challenge_token, settings)
    return await load_account(store, AccountKind(claims["kind"]), UUID(claims["sub"]))


async def _spend_backup_code(store, account: Account, code: str) -> bool:
    normalized = two_factor.normalize_backup_code(code)
    if normalized not in account.backup_codes:
        return False
    return await accounts_repo(store, account.kind).consume_backup_code(account.account_id, normalized)


async def verify_login(
    store,
    challenge_token: str,
    code: str,
    settings: Settings,
    email_sender,
    remember_device: bool = False,
    device_name: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> SecondFactorOutcome:
    """
    Complete a login with a TOTP code or a backup code.

    A backup code is spent on first use. With ``remember_device`` a trusted
    device is registered and its signed device token returned alongside the
    session token.

    Raises
    ------
    AuthenticationFailed
        Challenge token invalid or expired, or the code did not verify.
    ValidationFailed
        2FA is not enabled or has no secret.
    """
    account = await _challenged_account(store, challenge_token, settings)
    if not two_factor.is_enabled(account):
        raise ValidationFailed("2FA is not enabled for this user")
    if not account.two_factor_secret:
        raise ValidationFailed("2FA secret not found. Please set up 2FA again.")

    used_backup_code = await _spend_backup_code(store, account, code)
    if not used_backup_code and not two_factor.verify_totp(account.two_factor_secret, code, settings.totp_valid_window):
        logger.warning("Second factor rejected", kind=account.kind.value, company_name=account.company_name)
        raise AuthenticationFailed("Invalid verification code")

    now = utcnow()
    fields: Dict[str, Any] = {"last_login": now}
    device = None
    if remember_device:
        device = two_factor.new_trusted_device(
            now, settings.trusted_device_ttl_days, device_name, ip_address, user_agent
        )
        devices = two_factor.active_devices(account.trusted_devices, now) + [device]
        fields["trusted_devices"] = two_factor.devices_payload(devices)
    account = await update_account(store, account, fields)

    logger.info(
        "Second factor verified",
        kind=account.kind.value,
        company_name=account.company_name,
        backup_code=used_backup_code,
        remembered=device is not None,
    )
    await send_login_alert(store, email_sender, account, ip_address, user_agent)
    return SecondFactorOutcome(
        account=account,
        token=create_session_token(account.account_id, account.kind, settings),
        device_token=create_device_token(account.account_id, account.kind, device.device_id, settings)
        if device
        else None,
        device_id=device.device_id if device else None,
        used_backup_code=used_backup_code,
    )


async def validate_device(
    store,
    challenge_token: str,
    device_token: str,
    settings: Settings,
    email_sender,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> SecondFactorOutcome:
    """Skip the second factor for a trusted device that is still within its window."""
    account = await _challenged_account(store, challenge_token, settings)
    claims = decode_device_token(device_token, settings)
    if claims["sub"] != str(account.account_id) or claims["kind"] != account.kind.value:
        raise AuthenticationFailed("Invalid device token")

    device = two_factor.find_device(account.trusted_devices, claims["device_id"])
    if device is None:
        raise AuthenticationFailed("Device not trusted")

    now = utcnow()
    if device.expires_at <= now:
        remaining = [d for d in account.trusted_devices if d.device_id != device.device_id]
        await update_account(store, account, {"trusted_devices": two_factor.devices_payload(remaining)})
        raise AuthenticationFailed("Device token expired")

    device.last_used = now
    account = await update_account(
        store,
        account,
        {"last_login": now, "trusted_devices": two_factor.devices_payload(account.trusted_devices)},
    )
    logger.info("Trusted device accepted", kind=account.kind.value, company_name=account.company_name)
    await send_login_alert(store, email_sender, account, ip_address, user_agent)
    return SecondFactorOutcome(
        account=account,
        token=create_session_token(account.account_id, account.kind, settings),
        device_id=device.device_id,
    )
