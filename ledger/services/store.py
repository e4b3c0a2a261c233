"""Key-value persistence of the ledger collections.

Each collection is one JSON document under a fixed key and is always read
and written whole. Helpers here never commit; the calling service commits
once its mutation is complete.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.entry import KeyValueEntry
from ..schemas.activity import ActivityEntry
from ..schemas.customer import Customer
from ..schemas.preferences import LedgerSettings
from ..schemas.sale import Sale

logger = logging.getLogger(__name__)

CUSTOMERS_KEY = "installments_customers"
SALES_KEY = "installments_sales"
ACTIVITY_KEY = "installments_activity"
SETTINGS_KEY = "installments_settings"
USERS_KEY = "installments_auth_users"
SESSION_KEY = "installments_auth_session"
MANUAL_BACKUP_PREFIX = "installments_backup_"
AUTO_BACKUP_PREFIX = "installments_auto_backup_"

T = TypeVar("T")

_customers_adapter = TypeAdapter(list[Customer])
_sales_adapter = TypeAdapter(list[Sale])
_activity_adapter = TypeAdapter(list[ActivityEntry])
_settings_adapter = TypeAdapter(LedgerSettings)


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of reading a stored document: the value, or the fallback and why."""

    ok: bool
    value: T
    error: Optional[str] = None


def decode_record(
    raw: Optional[str], adapter: TypeAdapter[T], fallback: Callable[[], T]
) -> DecodeResult[T]:
    if raw is None:
        return DecodeResult(ok=True, value=fallback())
    try:
        return DecodeResult(ok=True, value=adapter.validate_json(raw))
    except ValidationError as exc:
        return DecodeResult(ok=False, value=fallback(), error=str(exc))


def encode_record(adapter: TypeAdapter[T], value: T) -> str:
    return adapter.dump_json(value, by_alias=True).decode("utf-8")


async def read_raw(session: AsyncSession, key: str) -> Optional[str]:
    entry = await session.get(KeyValueEntry, key)
    return entry.value if entry else None


async def write_raw(session: AsyncSession, key: str, value: str) -> None:
    entry = await session.get(KeyValueEntry, key)
    if entry is None:
        session.add(KeyValueEntry(key=key, value=value))
    else:
        entry.value = value


async def delete_keys(session: AsyncSession, *keys: str) -> None:
    await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key.in_(keys)))


async def list_keys(session: AsyncSession, prefix: str) -> list[str]:
    result = await session.execute(
        select(KeyValueEntry.key)
        .where(KeyValueEntry.key.startswith(prefix))
        .order_by(KeyValueEntry.key.asc())
    )
    return list(result.scalars().all())


async def load(
    session: AsyncSession, key: str, adapter: TypeAdapter[T], fallback: Callable[[], T]
) -> T:
    result = decode_record(await read_raw(session, key), adapter, fallback)
    if not result.ok:
        logger.warning("Stored value under %s is malformed; using the default. %s", key, result.error)
    return result.value


async def save(session: AsyncSession, key: str, adapter: TypeAdapter[T], value: T) -> None:
    await write_raw(session, key, encode_record(adapter, value))


async def load_customers(session: AsyncSession) -> list[Customer]:
    return await load(session, CUSTOMERS_KEY, _customers_adapter, list)


async def save_customers(session: AsyncSession, customers: list[Customer]) -> None:
    await save(session, CUSTOMERS_KEY, _customers_adapter, customers)


async def load_sales(session: AsyncSession) -> list[Sale]:
    return await load(session, SALES_KEY, _sales_adapter, list)


async def save_sales(session: AsyncSession, sales: list[Sale]) -> None:
    await save(session, SALES_KEY, _sales_adapter, sales)


async def load_activity(session: AsyncSession) -> list[ActivityEntry]:
    return await load(session, ACTIVITY_KEY, _activity_adapter, list)


async def save_activity(session: AsyncSession, entries: list[ActivityEntry]) -> None:
    await save(session, ACTIVITY_KEY, _activity_adapter, entries)


async def load_settings(session: AsyncSession) -> LedgerSettings:
    return await load(session, SETTINGS_KEY, _settings_adapter, LedgerSettings)


async def save_settings(session: AsyncSession, settings: LedgerSettings) -> None:
    await save(session, SETTINGS_KEY, _settings_adapter, settings)


def byte_size(value: Optional[str]) -> int:
    """Size in bytes of a stored document."""
    if value is None:
        return 0
    return len(value.encode("utf-8"))
