from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from cattlescan.schemas.auth import LoginCodeRequest, LoginCodeVerifyRequest, LoginSessionOut
from cattlescan.services.login_service import (
    LoginError,
    get_auth_client,
    send_login_code,
    verify_login_code,
)

router = APIRouter()


def get_login_client():
    try:
        return get_auth_client()
    except LoginError as exc:
        raise HTTPException(503, str(exc))


@router.post("/auth/otp", status_code=202)
def request_login_code(payload: LoginCodeRequest, client=Depends(get_login_client)):
    try:
        send_login_code(payload.email, client=client)
    except LoginError as exc:
        raise HTTPException(400, str(exc))
    return {"status": "sent"}


@router.post("/auth/verify", response_model=LoginSessionOut)
def verify_login(payload: LoginCodeVerifyRequest, client=Depends(get_login_client)):
    try:
        session = verify_login_code(payload.email, payload.code, client=client)
    except LoginError as exc:
        raise HTTPException(401, str(exc))
    return LoginSessionOut(
        user_id=session.user_id,
        email=session.email,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
    )
