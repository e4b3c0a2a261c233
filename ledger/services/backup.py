from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..schemas.backup import BackupDocument, BackupInfo, BackupSnapshot, ImportResult, StorageUsage
from ..schemas.common import utcnow
from ..schemas.preferences import LedgerSettings
from ..utils.formatting import format_date
from . import store
from .errors import BackupNotFoundError, ValidationFailed
from .installments import resync_sales

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"

_snapshot_adapter = TypeAdapter(BackupSnapshot)


def _csv_amount(value) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


async def export_backup(session: AsyncSession, *, now: Optional[datetime] = None) -> BackupDocument:
    return BackupDocument(
        customers=await store.load_customers(session),
        sales=await store.load_sales(session),
        export_date=now or utcnow(),
        version=EXPORT_VERSION,
    )


async def import_backup(session: AsyncSession, document: BackupDocument) -> ImportResult:
    """Replace the collections present in ``document``; absent ones stay as they are."""
    result = ImportResult()
    if document.customers is not None:
        await store.save_customers(session, document.customers)
        result.customers_imported = len(document.customers)
    if document.sales is not None:
        sales, _ = resync_sales(document.sales)
        await store.save_sales(session, sales)
        result.sales_imported = len(sales)
    await session.commit()
    return result


async def export_csv(session: AsyncSession) -> str:
    """Customers and sales as two sections of one spreadsheet-friendly CSV text."""
    customers = await store.load_customers(session)
    sales = await store.load_sales(session)
    date_format = (await store.load_settings(session)).date_format

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(["Customers"])
    writer.writerow(["Name", "Phone", "Address"])
    for customer in customers:
        writer.writerow([customer.name, customer.phone, customer.address])
    writer.writerow([])
    writer.writerow([])
    writer.writerow(["Sales"])
    writer.writerow(["Product", "Customer", "Total amount", "Paid", "Remaining", "Date"])
    for sale in sales:
        writer.writerow(
            [
                sale.product,
                sale.customer_name,
                _csv_amount(sale.total_amount),
                _csv_amount(sale.paid_amount),
                _csv_amount(sale.remaining_amount),
                format_date(sale.date, date_format),
            ]
        )
    return "\ufeff" + buffer.getvalue()


async def _snapshot(session: AsyncSession, kind: str, now: datetime) -> BackupSnapshot:
    settings = await store.load_settings(session)
    return BackupSnapshot(
        customers=await store.load_customers(session),
        sales=await store.load_sales(session),
        activity=await store.load_activity(session),
        settings=settings.model_dump(mode="json", by_alias=True),
        timestamp=now,
        type=kind,
    )


async def create_backup(
    session: AsyncSession, *, automatic: bool = False, now: Optional[datetime] = None
) -> Optional[BackupInfo]:
    """Store a full snapshot in the local store.

    Automatic backups are taken only when enabled in the settings, keyed by
    day, and only the most recent ones are kept.
    """
    now = now or utcnow()
    if automatic:
        if not (await store.load_settings(session)).auto_backup:
            return None
        key = f"{store.AUTO_BACKUP_PREFIX}{now:%Y-%m-%d}"
        kind = "auto"
    else:
        key = f"{store.MANUAL_BACKUP_PREFIX}{int(now.timestamp() * 1000)}"
        kind = "manual"

    encoded = store.encode_record(_snapshot_adapter, await _snapshot(session, kind, now))
    await store.write_raw(session, key, encoded)

    if automatic:
        auto_keys = await store.list_keys(session, store.AUTO_BACKUP_PREFIX)
        retention = get_settings().auto_backup_retention
        if len(auto_keys) > retention:
            await store.delete_keys(session, *auto_keys[: len(auto_keys) - retention])
    await session.commit()
    return BackupInfo(key=key, timestamp=now, type=kind, size=store.byte_size(encoded))


async def list_backups(session: AsyncSession) -> list[BackupInfo]:
    keys = await store.list_keys(session, store.MANUAL_BACKUP_PREFIX)
    keys += await store.list_keys(session, store.AUTO_BACKUP_PREFIX)
    backups: list[BackupInfo] = []
    for key in keys:
        raw = await store.read_raw(session, key)
        decoded = store.decode_record(raw, _snapshot_adapter, lambda: None)
        if not decoded.ok or decoded.value is None:
            logger.warning("Skipping unreadable backup %s", key)
            continue
        backups.append(
            BackupInfo(
                key=key,
                timestamp=decoded.value.timestamp,
                type=decoded.value.type,
                size=store.byte_size(raw),
            )
        )
    backups.sort(key=lambda info: info.timestamp, reverse=True)
    return backups


async def restore_backup(session: AsyncSession, key: str) -> BackupSnapshot:
    """Replace the current data with a stored snapshot."""
    if not key.startswith((store.MANUAL_BACKUP_PREFIX, store.AUTO_BACKUP_PREFIX)):
        raise BackupNotFoundError("Backup not found")
    raw = await store.read_raw(session, key)
    if raw is None:
        raise BackupNotFoundError("Backup not found")
    decoded = store.decode_record(raw, _snapshot_adapter, lambda: None)
    if not decoded.ok or decoded.value is None:
        raise ValidationFailed("Backup is unreadable.")

    snapshot = decoded.value
    sales, _ = resync_sales(snapshot.sales)
    await store.save_customers(session, snapshot.customers)
    await store.save_sales(session, sales)
    if snapshot.activity is not None:
        await store.save_activity(session, snapshot.activity)
    if snapshot.settings is not None:
        await store.save_settings(session, LedgerSettings.model_validate(snapshot.settings))
    await session.commit()
    return snapshot


async def clear_all_data(session: AsyncSession) -> None:
    """Remove customers, sales and the activity log. Settings and backups are kept."""
    await store.delete_keys(session, store.CUSTOMERS_KEY, store.SALES_KEY, store.ACTIVITY_KEY)
    await session.commit()


async def storage_usage(session: AsyncSession) -> StorageUsage:
    raw = {
        key: await store.read_raw(session, key)
        for key in (store.CUSTOMERS_KEY, store.SALES_KEY, store.ACTIVITY_KEY, store.SETTINGS_KEY)
    }
    sizes = {key: store.byte_size(value) for key, value in raw.items()}
    return StorageUsage(
        customers=sizes[store.CUSTOMERS_KEY],
        sales=sizes[store.SALES_KEY],
        activity=sizes[store.ACTIVITY_KEY],
        settings=sizes[store.SETTINGS_KEY],
        total=sum(sizes.values()),
        customer_count=len(await store.load_customers(session)),
        sale_count=len(await store.load_sales(session)),
        activity_count=len(await store.load_activity(session)),
    )
