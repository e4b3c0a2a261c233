from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .activity import ActivityEntry
from .common import LedgerModel, Timestamp
from .customer import Customer
from .sale import Sale


class BackupDocument(LedgerModel):
    """Export/import document. Absent collections are left alone on import."""

    customers: Optional[list[Customer]] = None
    sales: Optional[list[Sale]] = None
    export_date: Optional[Timestamp] = None
    version: str = "1.0"


class BackupSnapshot(LedgerModel):
    """Full snapshot kept inside the local store."""

    customers: list[Customer] = Field(default_factory=list)
    sales: list[Sale] = Field(default_factory=list)
    activity: Optional[list[ActivityEntry]] = None
    settings: Optional[dict[str, Any]] = None
    timestamp: Timestamp
    type: str = "manual"


class BackupInfo(LedgerModel):
    key: str
    timestamp: datetime
    type: str
    size: int


class ImportResult(LedgerModel):
    customers_imported: Optional[int] = None
    sales_imported: Optional[int] = None


class StorageUsage(LedgerModel):
    customers: int = 0
    sales: int = 0
    activity: int = 0
    settings: int = 0
    total: int = 0
    customer_count: int = 0
    sale_count: int = 0
    activity_count: int = 0
