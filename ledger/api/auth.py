from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ..schemas import (
    ChangePasswordRequest,
    FirstUserRequest,
    LoginRequest,
    SessionRecord,
    SessionResponse,
)
from ..services.auth import (
    AuthenticationError,
    InvalidCredentialsError,
    SetupError,
    change_password,
    create_first_user,
    has_users,
    login,
    logout,
)
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


@router.get("/setup")
async def setup_status(session: SessionDep) -> dict[str, bool]:
    """Whether a first user still has to be created."""
    return {"needsSetup": not await has_users(session)}


@router.post("/setup", status_code=status.HTTP_201_CREATED)
async def setup_first_user(payload: FirstUserRequest, session: SessionDep) -> dict[str, str]:
    try:
        user = await create_first_user(
            session, payload.username, payload.password, payload.confirm_password
        )
    except SetupError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"username": user.username}


@router.post("/login", response_model=SessionResponse, status_code=status.HTTP_200_OK)
async def login_endpoint(payload: LoginRequest, session: SessionDep) -> SessionResponse:
    """Exchange a username and password for a session token."""

    try:
        return await login(session, payload.username, payload.password, remember=payload.remember)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout_endpoint(session: SessionDep, current: CurrentSession) -> None:
    await logout(session)


@router.get("/session", response_model=SessionRecord, response_model_exclude={"token"})
async def session_endpoint(current: CurrentSession) -> SessionRecord:
    return current


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password_endpoint(
    payload: ChangePasswordRequest, session: SessionDep, current: CurrentSession
) -> None:
    try:
        await change_password(session, current.username, payload.old_password, payload.new_password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except SetupError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
