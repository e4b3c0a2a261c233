from __future__ import annotations

import secrets
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..schemas.activity import ActivityEntry, ActivityType
from ..schemas.common import utcnow
from . import store


def _activity_id() -> str:
    return f"{int(utcnow().timestamp() * 1000):x}{secrets.token_hex(4)}"


async def add_activity(
    session: AsyncSession,
    activity_type: ActivityType,
    text: str,
    meta: Optional[dict[str, Any]] = None,
) -> ActivityEntry:
    """Prepend an entry to the activity log, keeping only the newest entries.

    The caller commits.
    """
    entry = ActivityEntry(
        id=_activity_id(),
        type=ActivityType(activity_type),
        text=text,
        meta=meta or {},
        date=utcnow(),
    )
    entries = await store.load_activity(session)
    entries.insert(0, entry)
    await store.save_activity(session, entries[: get_settings().activity_log_limit])
    return entry


async def list_activity(
    session: AsyncSession,
    *,
    activity_type: Optional[ActivityType] = None,
    limit: int = 100,
) -> list[ActivityEntry]:
    entries = await store.load_activity(session)
    if activity_type:
        entries = [e for e in entries if e.type == activity_type]
    return entries[:limit]
