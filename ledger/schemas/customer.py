from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator

from .common import LedgerModel, Money


class CustomerCategory(str, Enum):
    NORMAL = "normal"
    VIP = "vip"
    PROBLEMATIC = "problematic"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.NORMAL


class Customer(LedgerModel):
    """Stored customer record."""

    id: str
    name: str
    phone: str = ""
    address: str = ""
    notes: str = ""
    category: CustomerCategory = CustomerCategory.NORMAL

    @field_validator("phone", "address", "notes", mode="before")
    @classmethod
    def _blank_when_missing(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return CustomerCategory.NORMAL if value in (None, "") else value


class CustomerCreate(LedgerModel):
    """Payload for adding a customer."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(max_length=255)
    phone: str = Field(default="", max_length=64)
    address: str = Field(default="", max_length=512)
    notes: str = Field(default="", max_length=2048)
    category: CustomerCategory = CustomerCategory.NORMAL


class CustomerUpdate(LedgerModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=64)
    address: Optional[str] = Field(default=None, max_length=512)
    notes: Optional[str] = Field(default=None, max_length=2048)
    category: Optional[CustomerCategory] = None


class CustomerOverview(LedgerModel):
    """A customer together with the totals of their sales."""

    customer: Customer
    sales_count: int = 0
    total_amount: Money = Decimal("0")
    paid_amount: Money = Decimal("0")
    remaining_amount: Money = Decimal("0")
    late_sales: int = 0
    completed_sales: int = 0
