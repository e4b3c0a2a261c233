from __future__ import annotations

from fastapi import APIRouter, Query

from ..schemas import SearchResults
from ..services import global_search
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


@router.get("", response_model=SearchResults)
async def search_endpoint(
    session: SessionDep, current: CurrentSession, q: str = Query(default="", max_length=200)
) -> SearchResults:
    return await global_search(session, q)
