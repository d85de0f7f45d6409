"""Auth schema module."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=6, max_length=256)


class CustomerSignupRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=8, max_length=256)
    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=10, max_length=32)
    address: str | None = Field(default=None, max_length=2000)


class SessionUser(BaseModel):
    id: str
    email: str
    name: str
    role: str
    status: str


class SessionResponse(BaseModel):
    user: SessionUser
    expires: int
    session_token: str | None = None
    refreshed: bool | None = None
    refresh_recommended: bool | None = None
