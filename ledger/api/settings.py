from __future__ import annotations

from fastapi import APIRouter

from ..schemas import LedgerSettings, LedgerSettingsUpdate
from ..services import load_ledger_settings, update_ledger_settings
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


@router.get("", response_model=LedgerSettings)
async def get_settings_endpoint(session: SessionDep, current: CurrentSession) -> LedgerSettings:
    return await load_ledger_settings(session)


@router.patch("", response_model=LedgerSettings)
async def update_settings_endpoint(
    payload: LedgerSettingsUpdate, session: SessionDep, current: CurrentSession
) -> LedgerSettings:
    return await update_ledger_settings(session, payload)
