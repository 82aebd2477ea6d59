from typing import Optional

from pydantic import BaseModel, Field


class LoginCodeRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class LoginCodeVerifyRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    code: str = Field(..., min_length=6, max_length=6)


class LoginSessionOut(BaseModel):
    user_id: str
    email: Optional[str] = None
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: str = "bearer"
