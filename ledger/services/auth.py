from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..schemas import SessionRecord, SessionResponse, UserCredential
from ..schemas.common import utcnow
from . import store

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 4

_users_adapter = TypeAdapter(list[UserCredential])
_session_adapter = TypeAdapter(Optional[SessionRecord])


class AuthenticationError(Exception):
    """Base exception for authentication failures."""


class InvalidCredentialsError(AuthenticationError):
    """Raised when a username/password pair does not match a stored user."""


class SetupError(AuthenticationError):
    """Raised when first-user setup or a password change is rejected."""


async def _load_users(session: AsyncSession) -> list[UserCredential]:
    return await store.load(session, store.USERS_KEY, _users_adapter, list)


async def _save_users(session: AsyncSession, users: list[UserCredential]) -> None:
    await store.save(session, store.USERS_KEY, _users_adapter, users)


def _find_user(users: list[UserCredential], username: str) -> Optional[UserCredential]:
    wanted = username.strip().lower()
    return next((u for u in users if u.username.lower() == wanted), None)


def _secrets_match(stored: str, given: str) -> bool:
    return hmac.compare_digest(stored.encode("utf-8"), given.encode("utf-8"))


def _check_new_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise SetupError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


async def has_users(session: AsyncSession) -> bool:
    return bool(await _load_users(session))


async def ensure_default_user(session: AsyncSession) -> bool:
    """Create the configured default login when no user exists yet."""
    if await has_users(session):
        return False
    settings = get_settings()
    await _save_users(
        session,
        [UserCredential(username=settings.default_username, password=settings.default_password)],
    )
    await session.commit()
    logger.info("Created default user %s", settings.default_username)
    return True


async def create_first_user(
    session: AsyncSession, username: str, password: str, confirm_password: str
) -> UserCredential:
    username = username.strip()
    if not username:
        raise SetupError("Username is required.")
    _check_new_password(password)
    if password != confirm_password:
        raise SetupError("Passwords do not match.")
    if await has_users(session):
        raise SetupError("A user already exists.")

    user = UserCredential(username=username, password=password)
    await _save_users(session, [user])
    await session.commit()
    return user


async def login(
    session: AsyncSession,
    username: str,
    password: str,
    *,
    remember: bool = False,
    now: Optional[datetime] = None,
) -> SessionResponse:
    """Check the credentials and replace the stored session with a new one."""
    user = _find_user(await _load_users(session), username)
    if user is None or not _secrets_match(user.password, password):
        raise InvalidCredentialsError("Invalid username or password.")

    settings = get_settings()
    ttl = settings.remember_session_ttl_seconds if remember else settings.session_ttl_seconds
    now = now or utcnow()
    record = SessionRecord(
        username=user.username,
        token=secrets.token_urlsafe(32),
        created_at=now,
        expires_at=now + timedelta(seconds=ttl),
    )
    await store.save(session, store.SESSION_KEY, _session_adapter, record)
    await session.commit()
    return SessionResponse(
        access_token=record.token,
        token_type="bearer",
        username=record.username,
        expires_in=ttl,
        expires_at=record.expires_at,
    )


async def logout(session: AsyncSession) -> None:
    await store.delete_keys(session, store.SESSION_KEY)
    await session.commit()


async def get_active_session(
    session: AsyncSession, *, now: Optional[datetime] = None
) -> Optional[SessionRecord]:
    """The stored session, or ``None``; an expired one is removed on the way."""
    record = await store.load(session, store.SESSION_KEY, _session_adapter, lambda: None)
    if record is None:
        return None
    if record.expires_at <= (now or utcnow()):
        await logout(session)
        return None
    return record


async def change_password(
    session: AsyncSession, username: str, old_password: str, new_password: str
) -> None:
    users = await _load_users(session)
    user = _find_user(users, username)
    if user is None or not _secrets_match(user.password, old_password):
        raise InvalidCredentialsError("Current password is incorrect.")
    _check_new_password(new_password)

    await _save_users(
        session,
        [
            u.model_copy(update={"password": new_password}) if u.username == user.username else u
            for u in users
        ],
    )
    await session.commit()
