"""Subjects and bodies of the emails the service sends."""

from datetime import datetime
from typing import Optional
from typing import Tuple


def owner_welcome(first_name: str, company_name: str) -> Tuple[str, str]:
    subject = f"Welcome to ProjectFlow, {company_name}"
    body = (
        f"Hi {first_name},\n\n"
        f"Your company account for {company_name} has been created. "
        "Sign in to activate it and start adding your team.\n"
    )
    return subject, body


def employee_welcome(
    name: str, company_name: str, email: str, temporary_password: str, team_member_id: str, ttl_minutes: int, login_url: str
) -> Tuple[str, str]:
    subject = f"Your {company_name} ProjectFlow account"
    body = (
        f"Hi {name},\n\n"
        f"An account has been created for you at {company_name}.\n\n"
        f"Team member ID: {team_member_id}\n"
        f"Email: {email}\n"
        f"Temporary password: {temporary_password}\n\n"
        f"The temporary password expires in {ttl_minutes} minutes. "
        f"Sign in at {login_url} and choose a new password.\n"
    )
    return subject, body


def password_reset_otp(code: str, ttl_minutes: int) -> Tuple[str, str]:
    subject = "Your password reset code"
    body = (
        f"Your one-time code is {code}.\n\n"
        f"It expires in {ttl_minutes} minutes. If you did not ask for a password reset, ignore this email.\n"
    )
    return subject, body


def login_alert(display_name: str, when: datetime, ip_address: Optional[str], user_agent: Optional[str]) -> Tuple[str, str]:
    subject = "New sign-in to your ProjectFlow account"
    body = (
        f"Hi {display_name},\n\n"
        f"Your account was signed in to at {when.strftime('%Y-%m-%d %H:%M UTC')}.\n"
        f"IP address: {ip_address or 'unknown'}\n"
        f"Device: {user_agent or 'unknown'}\n\n"
        "If this wasn't you, reset your password immediately.\n"
    )
    return subject, body
