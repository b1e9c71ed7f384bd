"""
Signed tokens (PyJWT, HS256).

Four kinds share one process-wide secret from settings:

- login token: ``sub`` + ``kind``, valid ``login_token_ttl_hours`` (7 days)
- session token: issued after a second-factor check, ``session_token_ttl_hours`` (24 hours)
- device token: ``type="device"`` + ``device_id``, valid ``device_token_ttl_days``; never accepted as a bearer token
- challenge token: ``type="two_factor_challenge"``, binds a password check to the second-factor step
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any
from typing import Dict
from typing import Optional
from uuid import UUID

import jwt

from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.exceptions import AuthenticationFailed

ACCESS_TOKEN_TYPE = "access"
DEVICE_TOKEN_TYPE = "device"
CHALLENGE_TOKEN_TYPE = "two_factor_challenge"
CHALLENGE_TTL_MINUTES = 10


def _encode(claims: Dict[str, Any], lifetime: timedelta, settings: Settings, now: Optional[datetime] = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {**claims, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_login_token(account_id: UUID, kind: AccountKind, settings: Settings) -> str:
    return _encode(
        {"sub": str(account_id), "kind": kind.value, "type": ACCESS_TOKEN_TYPE},
        timedelta(hours=settings.login_token_ttl_hours),
        settings,
    )


def create_session_token(account_id: UUID, kind: AccountKind, settings: Settings) -> str:
    return _encode(
        {"sub": str(account_id), "kind": kind.value, "type": ACCESS_TOKEN_TYPE},
        timedelta(hours=settings.session_token_ttl_hours),
        settings,
    )


def create_device_token(account_id: UUID, kind: AccountKind, device_id: str, settings: Settings) -> str:
    return _encode(
        {"sub": str(account_id), "kind": kind.value, "type": DEVICE_TOKEN_TYPE, "device_id": device_id},
        timedelta(days=settings.device_token_ttl_days),
        settings,
    )


def create_challenge_token(account_id: UUID, kind: AccountKind, settings: Settings) -> str:
    return _encode(
        {"sub": str(account_id), "kind": kind.value, "type": CHALLENGE_TOKEN_TYPE},
        timedelta(minutes=CHALLENGE_TTL_MINUTES),
        settings,
    )


def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    """
    Verify signature and expiry.

    Raises
    ------
    AuthenticationFailed
        When the token is expired, tampered with, or missing required claims.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed("Token expired") from None
    except jwt.PyJWTError:
        raise AuthenticationFailed("Invalid token") from None

    if "sub" not in claims or claims.get("kind") not in {k.value for k in AccountKind}:
        raise AuthenticationFailed("Invalid token payload")
    return claims


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Claims of a login or session token; device and challenge tokens are refused."""
    claims = decode_token(token, settings)
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise AuthenticationFailed("Token cannot be used for API access")
    return claims


def decode_device_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Device token claims; ``Invalid device token`` for anything else."""
    try:
        claims = decode_token(token, settings)
    except AuthenticationFailed:
        raise AuthenticationFailed("Invalid device token") from None
    if claims.get("type") != DEVICE_TOKEN_TYPE or not claims.get("device_id"):
        raise AuthenticationFailed("Invalid device token")
    return claims


def decode_challenge_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        claims = decode_token(token, settings)
    except AuthenticationFailed:
        raise AuthenticationFailed("Two-factor challenge expired, please log in again") from None
    if claims.get("type") != CHALLENGE_TOKEN_TYPE:
        raise AuthenticationFailed("Invalid two-factor challenge")
    return claims
