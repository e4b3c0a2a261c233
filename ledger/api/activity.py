from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from ..schemas import ActivityEntry, ActivityType
from ..services import list_activity
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


@router.get("", response_model=list[ActivityEntry])
async def list_activity_endpoint(
    session: SessionDep,
    current: CurrentSession,
    type: Optional[ActivityType] = None,
    limit: int = Query(default=100, ge=1, le=500),
) -> list[ActivityEntry]:
    return await list_activity(session, activity_type=type, limit=limit)
