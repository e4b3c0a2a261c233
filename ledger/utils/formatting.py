from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from ..config import get_settings

Number = Union[int, float, Decimal]


def format_money(value: Optional[Number], currency_label: Optional[str] = None) -> str:
    """Thousands-separated amount followed by the currency label; negatives show as zero."""
    label = currency_label if currency_label is not None else get_settings().currency_label
    amount = Decimal(str(value)) if value is not None else Decimal("0")
    if amount.is_nan() or amount < 0:
        amount = Decimal("0")
    if amount == amount.to_integral_value():
        text = f"{int(amount):,}"
    else:
        text = f"{amount.normalize():,f}"
    return f"{text} {label}".strip()


def format_date(value: datetime, date_format: str = "en-GB") -> str:
    if date_format == "en-US":
        return value.strftime("%m/%d/%Y %H:%M")
    if date_format == "iso":
        return value.strftime("%Y-%m-%d %H:%M")
    return value.strftime("%d %b %Y %H:%M")
