from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Response, status
from pydantic import ValidationError

from ..schemas import BackupDocument, BackupInfo, ImportResult, StorageUsage
from ..services import (
    clear_all_data,
    create_backup,
    export_backup,
    export_csv,
    import_backup,
    list_backups,
    restore_backup,
    storage_usage,
)
from ..services.errors import BackupNotFoundError, ValidationFailed
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


@router.get("/export", response_model=BackupDocument)
async def export_endpoint(session: SessionDep, current: CurrentSession) -> BackupDocument:
    return await export_backup(session)


@router.post("/import", response_model=ImportResult, response_model_exclude_none=True)
async def import_endpoint(
    session: SessionDep, current: CurrentSession, document: Any = Body(...)
) -> ImportResult:
    """Replace customers and/or sales with the collections found in an exported document."""
    if not isinstance(document, dict):
        raise HTTPException(status_code=400, detail="Invalid backup file")
    try:
        parsed = BackupDocument.model_validate(document)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="Invalid backup file") from exc
    return await import_backup(session, parsed)


@router.get("/csv")
async def export_csv_endpoint(session: SessionDep, current: CurrentSession) -> Response:
    content = await export_csv(session)
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="installments.csv"'},
    )


@router.get("/snapshots", response_model=list[BackupInfo])
async def list_snapshots_endpoint(session: SessionDep, current: CurrentSession) -> list[BackupInfo]:
    return await list_backups(session)


@router.post("/snapshots", response_model=BackupInfo, status_code=status.HTTP_201_CREATED)
async def create_snapshot_endpoint(
    session: SessionDep, current: CurrentSession, automatic: bool = False
) -> BackupInfo:
    info = await create_backup(session, automatic=automatic)
    if info is None:
        raise HTTPException(status_code=409, detail="Automatic backups are disabled")
    return info


@router.post("/snapshots/{key}/restore", status_code=status.HTTP_204_NO_CONTENT)
async def restore_snapshot_endpoint(key: str, session: SessionDep, current: CurrentSession) -> None:
    try:
        await restore_backup(session, key)
    except BackupNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/clear", status_code=status.HTTP_204_NO_CONTENT)
async def clear_endpoint(session: SessionDep, current: CurrentSession) -> None:
    await clear_all_data(session)


@router.get("/usage", response_model=StorageUsage)
async def usage_endpoint(session: SessionDep, current: CurrentSession) -> StorageUsage:
    return await storage_usage(session)
