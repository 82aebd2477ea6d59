"""Email one-time-code sign-in through Supabase Auth."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from supabase import create_client

from cattlescan.core.config import get_settings

logger = logging.getLogger(__name__)

_CODE_RE = re.compile(r"^\d{6}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class LoginError(Exception):
    pass


@dataclass(frozen=True)
class LoginSession:
    user_id: str
    email: Optional[str]
    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]


def _mask_email(email: str) -> str:
    email = (email or "").strip()
    if "@" not in email:
        return email
    local, domain = email.split("@", 1)
    if not local:
        return f"*@{domain}"
    if len(local) == 1:
        return f"{local}*@{domain}"
    return f"{local[0]}***@{domain}"


def get_auth_client():
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise LoginError("Supabase auth is not configured")
    return create_client(settings.supabase_url, settings.supabase_key)


def _normalize_email(email: str) -> str:
    value = (email or "").strip().lower()
    if not _EMAIL_RE.match(value):
        raise LoginError("Enter a valid email address")
    return value


def send_login_code(email: str, *, client=None) -> None:
    address = _normalize_email(email)
    client = client or get_auth_client()
    try:
        client.auth.sign_in_with_otp({"email": address})
    except Exception as exc:
        logger.warning("Failed to send login code to=%s: %s", _mask_email(address), exc)
        raise LoginError("Could not send the login code") from exc
    logger.info("Login code sent to=%s", _mask_email(address))


def verify_login_code(email: str, code: str, *, client=None) -> LoginSession:
    address = _normalize_email(email)
    token = (code or "").strip()
    if not _CODE_RE.match(token):
        raise LoginError("The code must be 6 digits")

    client = client or get_auth_client()
    try:
        response = client.auth.verify_otp({"email": address, "token": token, "type": "email"})
    except Exception as exc:
        logger.info("Login code rejected for=%s: %s", _mask_email(address), exc)
        raise LoginError("Invalid or expired code") from exc

    session = getattr(response, "session", None)
    user = getattr(response, "user", None) or getattr(session, "user", None)
    if session is None or user is None or not getattr(session, "access_token", None):
        raise LoginError("Invalid or expired code")

    logger.info("Login verified user=%s", user.id)
    return LoginSession(
        user_id=str(user.id),
        email=getattr(user, "email", None),
        access_token=session.access_token,
        refresh_token=getattr(session, "refresh_token", None),
        expires_in=getattr(session, "expires_in", None),
    )
