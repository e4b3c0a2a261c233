from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .common import LedgerModel, Timestamp


class UserCredential(LedgerModel):
    """Stored login. Single device, kept as entered."""

    username: str
    password: str


class SessionRecord(LedgerModel):
    username: str
    token: str
    created_at: Timestamp
    expires_at: Timestamp


class LoginRequest(LedgerModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=256)
    remember: bool = False


class FirstUserRequest(LedgerModel):
    username: str = Field(max_length=64)
    password: str = Field(max_length=256)
    confirm_password: str = Field(max_length=256)


class ChangePasswordRequest(LedgerModel):
    old_password: str = Field(max_length=256)
    new_password: str = Field(max_length=256)


class SessionResponse(LedgerModel):
    """Response returned after a successful login."""

    access_token: str = Field(description="Opaque session token to use in the Authorization header")
    token_type: str = Field(default="bearer")
    username: str
    expires_in: int = Field(description="Lifetime of the session in seconds")
    expires_at: datetime = Field(description="UTC timestamp when the session expires")
