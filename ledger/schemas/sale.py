from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator

from .common import ZERO, LedgerModel, Money, Timestamp


class SaleStatus(str, Enum):
    ACTIVE = "active"
    LATE = "late"
    COMPLETED = "completed"


class Payment(LedgerModel):
    """Money received against a sale. Never edited once recorded."""

    id: str
    amount: Money
    note: str = ""
    date: Timestamp

    @field_validator("note", mode="before")
    @classmethod
    def _blank_note(cls, value: Any) -> Any:
        return "" if value is None else value


class Installment(LedgerModel):
    """One scheduled portion of a sale.

    ``amount`` is the balance still owed on the installment and shrinks with
    partial payments; ``original_amount`` is fixed when the schedule is built.
    Schedules written before it existed leave it unset until the sale is
    resynced.
    """

    number: int
    amount: Money
    original_amount: Optional[Money] = None
    due_date: Timestamp
    paid: bool = False
    paid_date: Optional[Timestamp] = None


class Sale(LedgerModel):
    """A credit sale with its embedded payments and installment schedule."""

    id: str
    customer_id: str
    customer_name: str = ""
    product: str
    total_amount: Money
    paid_amount: Money = ZERO
    payments: list[Payment] = Field(default_factory=list)
    contract_text: str = ""
    installments_count: int = 1
    installments_schedule: list[Installment] = Field(default_factory=list)
    due_date: Optional[Timestamp] = None
    date: Timestamp

    @field_validator("paid_amount", mode="before")
    @classmethod
    def _zero_when_missing(cls, value: Any) -> Any:
        return ZERO if value is None else value

    @field_validator("payments", "installments_schedule", mode="before")
    @classmethod
    def _empty_when_missing(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("customer_name", "contract_text", mode="before")
    @classmethod
    def _blank_when_missing(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def remaining_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @property
    def is_completed(self) -> bool:
        return self.remaining_amount <= 0

    @property
    def last_payment_at(self) -> Optional[datetime]:
        if not self.payments:
            return None
        return max(payment.date for payment in self.payments)


class SaleRead(Sale):
    """API response shape: the stored sale plus its derived state."""

    remaining: Money = ZERO
    status: SaleStatus = SaleStatus.ACTIVE
    progress_percent: int = 0


class SaleCreate(LedgerModel):
    """Payload for registering a new sale."""

    model_config = ConfigDict(str_strip_whitespace=True)

    customer_id: str
    product: str = Field(max_length=255)
    total_amount: Decimal
    installments_count: int = Field(default=0, ge=0, le=240)
    installment_amount: Optional[Decimal] = Field(default=None, gt=0)
    due_date: Optional[Timestamp] = None
    contract_text: str = ""


class SaleUpdate(LedgerModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    product: Optional[str] = Field(default=None, max_length=255)
    total_amount: Optional[Decimal] = None
    contract_text: Optional[str] = None


class PaymentCreate(LedgerModel):
    amount: Decimal = Field(gt=0)
    note: Optional[str] = Field(default=None, max_length=512)


class SaleFilter(LedgerModel):
    """Criteria for narrowing the sales list."""

    query: Optional[str] = None
    status: Optional[SaleStatus] = None
    customer_id: Optional[str] = None
    date_from: Optional[Timestamp] = None
    date_to: Optional[Timestamp] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
