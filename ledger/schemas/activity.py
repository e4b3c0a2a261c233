from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from .common import LedgerModel, Timestamp


class ActivityType(str, Enum):
    SALE = "sale"
    PAYMENT = "payment"
    CUSTOMER = "customer"


class ActivityEntry(LedgerModel):
    """Audit log line. Stored newest first."""

    id: str
    type: ActivityType
    text: str
    meta: dict[str, Any] = Field(default_factory=dict)
    date: Timestamp

    @field_validator("meta", mode="before")
    @classmethod
    def _empty_meta(cls, value: Any) -> Any:
        return {} if value is None else value
