"""
Password-reset OTP

Per account:

    no-pending-otp -> send -> otp-pending(code, expiry)
                   -> verify (matching, unexpired) -> code cleared, verification stamped
                   -> reset (stamp still fresh) -> no-pending-otp

A new send overwrites any pending code. A wrong code leaves the pending code
in place.
"""

import hmac
import secrets
from datetime import datetime
from datetime import timedelta
from typing import Any
from typing import Dict
from typing import Optional

from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.account import Account

OTP_DIGITS = 6
MIN_PASSWORD_LENGTH = 6


def generate_otp() -> str:
    """Six-digit numeric code, zero padded."""
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def issue_fields(code: str, now: datetime, ttl_minutes: int) -> Dict[str, Any]:
    """Columns written when a code is sent; any earlier code and verification are replaced."""
    return {
        "reset_otp": code,
        "reset_otp_expiry": now + timedelta(minutes=ttl_minutes),
        "otp_verified_at": None,
    }


def is_valid(account: Account, code: Optional[str], now: datetime) -> bool:
    """True when ``code`` matches the pending code and has not expired."""
    if not account.reset_otp or not account.reset_otp_expiry or not code:
        return False
    if now > account.reset_otp_expiry:
        return False
    code = str(code)
    # compare_digest only accepts ASCII str
    if len(code) != OTP_DIGITS or not (code.isascii() and code.isdigit()):
        return False
    return hmac.compare_digest(account.reset_otp, code)


def verify_fields(now: datetime) -> Dict[str, Any]:
    """Columns written on a successful verification."""
    return {"reset_otp": None, "reset_otp_expiry": None, "otp_verified_at": now}


def can_reset(account: Account, now: datetime, ttl_minutes: int) -> bool:
    """A reset needs a verification younger than the OTP window."""
    if account.otp_verified_at is None:
        return False
    return now - account.otp_verified_at <= timedelta(minutes=ttl_minutes)


def check_new_password(new_password: Optional[str], confirm_password: Optional[str] = None) -> None:
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if confirm_password is not None and new_password != confirm_password:
        raise ValidationFailed("Passwords do not match")


def reset_fields(password_hash: str) -> Dict[str, Any]:
    return {
        "password_hash": password_hash,
        "reset_otp": None,
        "reset_otp_expiry": None,
        "otp_verified_at": None,
    }
