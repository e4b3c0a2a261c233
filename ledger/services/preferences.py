from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.preferences import LedgerSettings, LedgerSettingsUpdate
from . import store


async def load_ledger_settings(session: AsyncSession) -> LedgerSettings:
    """Stored preferences merged over the defaults."""
    return await store.load_settings(session)


async def update_ledger_settings(
    session: AsyncSession, payload: LedgerSettingsUpdate
) -> LedgerSettings:
    current = await store.load_settings(session)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    updated = current.model_copy(update=changes)
    await store.save_settings(session, updated)
    await session.commit()
    return updated
