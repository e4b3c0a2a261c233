from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..schemas import SessionRecord
from ..services.auth import get_active_session


oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    description="Use the `/api/auth/login` endpoint with a username and password to obtain a session token.",
)

SessionDep = Annotated[AsyncSession, Depends(get_db)]
TokenDep = Annotated[str, Depends(oauth2_scheme)]


def _unauthorised(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def ensure_session(session: SessionDep, token: TokenDep) -> SessionRecord:
    record = await get_active_session(session)
    if record is None:
        raise _unauthorised("Session has expired or you are not logged in")
    if not hmac.compare_digest(record.token.encode("utf-8"), token.encode("utf-8")):
        raise _unauthorised("Invalid authentication credentials")
    return record


CurrentSession = Annotated[SessionRecord, Depends(ensure_session)]
