from typing import Optional

from pydantic import BaseModel


class UserLogin(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    email: Optional[str] = None
    isLecturer: bool = False


class UserLoginResponse(BaseModel):
    access_token: str
    token_type: str
    user: SessionResponse
