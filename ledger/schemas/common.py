from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def _money_to_json(value: Decimal) -> int | float:
    """Whole amounts are written as integers, the way the stored documents carry them."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Money = Annotated[Decimal, PlainSerializer(_money_to_json, when_used="json")]
Timestamp = Annotated[datetime, AfterValidator(_ensure_aware)]

ZERO = Decimal("0")


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerModel(BaseModel):
    """Base for stored records and API payloads.

    Attributes are snake_case in Python and camelCase in JSON, which keeps
    backups written by earlier versions of the ledger importable as-is.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
