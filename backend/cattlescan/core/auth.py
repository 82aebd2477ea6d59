"""Supabase access-token verification.

Scans may be submitted anonymously; reviewing or flagging a scan needs a
signed-in user. Tokens are checked against the project JWT secret (HS256)
and the project JWKS (ES256, asymmetric signing keys).
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

import jwt
from fastapi import Header, HTTPException
from jwt import PyJWKClient

from cattlescan.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_jwks_client: Optional[PyJWKClient] = None
_jwks_lock = threading.Lock()


@dataclass
class CurrentUser:
    id: str
    email: Optional[str] = None


def _get_jwks_client(jwks_url: str) -> PyJWKClient:
    global _jwks_client
    with _jwks_lock:
        if _jwks_client is None:
            _jwks_client = PyJWKClient(jwks_url, cache_keys=True, lifespan=3600)
        return _jwks_client


def _secret_key(token: str, settings: Settings) -> Optional[Any]:
    return settings.supabase_jwt_secret or None


def _jwks_key(token: str, settings: Settings) -> Optional[Any]:
    base_url = (settings.supabase_url or "").rstrip("/")
    if not base_url:
        return None
    try:
        client = _get_jwks_client(f"{base_url}/auth/v1/.well-known/jwks.json")
        return client.get_signing_key_from_jwt(token).key
    except Exception as exc:
        logger.debug("JWKS signing key unavailable: %s", exc)
        return None


_KeyLookup = Callable[[str, Settings], Optional[Any]]


def _strategies(alg: str) -> list[tuple[str, _KeyLookup]]:
    # Try the scheme the header names first to avoid a needless JWKS fetch.
    hs256 = ("HS256", _secret_key)
    es256 = ("ES256", _jwks_key)
    return [es256, hs256] if alg == "ES256" else [hs256, es256]


def _verify(token: str, settings: Settings) -> Optional[dict]:
    try:
        alg = jwt.get_unverified_header(token).get("alg", "")
    except jwt.DecodeError:
        return None

    audience = (settings.supabase_jwt_audience or "").strip()
    for algorithm, lookup in _strategies(alg):
        key = lookup(token, settings)
        if key is None:
            continue
        try:
            return jwt.decode(
                token,
                key,
                algorithms=[algorithm],
                audience=audience or None,
                options={"verify_aud": bool(audience)},
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("%s verification failed: %s", algorithm, exc)
    return None


def decode_user_token(token: str) -> CurrentUser:
    settings = get_settings()
    if not settings.supabase_jwt_secret and not settings.supabase_url:
        raise HTTPException(500, "SUPABASE_JWT_SECRET is not configured")

    payload = _verify(token, settings)
    if payload is None or not payload.get("sub"):
        raise HTTPException(401, "Invalid token")

    return CurrentUser(id=str(payload["sub"]), email=payload.get("email"))


def _bearer_token(authorization: str) -> str:
    if not authorization.startswith("Bearer "):
        raise HTTPException(401, "Missing bearer token")
    return authorization.split(" ", 1)[1].strip()


def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> CurrentUser:
    if not authorization:
        raise HTTPException(401, "Missing bearer token")
    return decode_user_token(_bearer_token(authorization))


def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[CurrentUser]:
    """Anonymous callers get None; a malformed or forged token is still rejected."""
    if not authorization:
        return None
    return decode_user_token(_bearer_token(authorization))
