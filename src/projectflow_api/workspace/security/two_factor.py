"""
Two-factor authentication primitives.

TOTP secrets and QR codes (pyotp, qrcode), single-use backup codes and
trusted-device records. The enabled flag is stored twice, as
``two_factor_enabled`` and ``settings.security.two_factor_auth``; every write
goes through ``flag_fields`` so the two never diverge.
"""

import base64
import copy
import io
import secrets
from datetime import datetime
from datetime import timedelta
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import pyotp
import qrcode

from projectflow_api.workspace.models.account import Account
from projectflow_api.workspace.models.account import TrustedDevice


def is_enabled(account: Account) -> bool:
    """Either storage location counts; legacy records may only carry one."""
    security = account.settings.get("security") or {}
    return bool(account.two_factor_enabled or security.get("two_factor_auth"))


def flag_fields(account: Account, enabled: bool) -> Dict[str, Any]:
    """Columns that set the logical 2FA flag, both locations at once."""
    settings = copy.deepcopy(account.settings)
    security = dict(settings.get("security") or {})
    security["two_factor_auth"] = enabled
    settings["security"] = security
    return {"two_factor_enabled": enabled, "settings": settings}


def generate_secret() -> str:
    return pyotp.random_base32(length=32)


def provisioning_uri(secret: str, label: str, issuer: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=label[:64], issuer_name=issuer)


def qr_code_data_url(uri: str) -> str:
    """PNG QR code for ``uri`` as a data URL."""
    image = qrcode.make(uri)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode('ascii')}"


def verify_totp(secret: Optional[str], code: Optional[str], valid_window: int, now: Optional[datetime] = None) -> bool:
    if not secret or not code:
        return False
    return pyotp.TOTP(secret).verify(str(code).strip(), for_time=now, valid_window=valid_window)


def generate_backup_codes(count: int) -> List[str]:
    """Eight hex characters each, uppercase."""
    return [secrets.token_hex(4).upper() for _ in range(count)]


def normalize_backup_code(code: str) -> str:
    return code.strip().replace("-", "").replace(" ", "").upper()


# ════════════════════════════════════════════════════════════════════════════
# Trusted devices
# ════════════════════════════════════════════════════════════════════════════


def new_trusted_device(
    now: datetime,
    ttl_days: int,
    device_name: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> TrustedDevice:
    return TrustedDevice(
        device_id=secrets.token_hex(16),
        device_name=device_name or "Unknown device",
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=now,
        expires_at=now + timedelta(days=ttl_days),
        last_used=now,
    )


def active_devices(devices: List[TrustedDevice], now: datetime) -> List[TrustedDevice]:
    """Devices whose trust window is still open."""
    return [device for device in devices if device.expires_at > now]


def find_device(devices: List[TrustedDevice], device_id: str) -> Optional[TrustedDevice]:
    for device in devices:
        if device.device_id == device_id:
            return device
    return None


def devices_payload(devices: List[TrustedDevice]) -> List[Dict[str, Any]]:
    """JSON-ready list for the trusted_devices column."""
    return [device.model_dump(mode="json") for device in devices]
