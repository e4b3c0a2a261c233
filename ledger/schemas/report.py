from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field

from .common import LedgerModel, Money
from .sale import Sale


class ReportPeriod(str, Enum):
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class SalesSummary(LedgerModel):
    sales_count: int = 0
    total_amount: Money = Decimal("0")
    collected: Money = Decimal("0")
    outstanding: Money = Decimal("0")
    collection_rate: int = 0
    completed_count: int = 0
    active_count: int = 0
    late_count: int = 0
    average_sale: int = 0
    payments_count: int = 0
    average_payment: int = 0


class TopCustomer(LedgerModel):
    customer_id: str
    name: str
    sales_count: int
    total: Money


class UpcomingInstallment(LedgerModel):
    sale_id: str
    customer_id: str
    customer_name: str
    product: str
    number: int
    amount: Money
    due_date: datetime
    days_until: int


class MonthlyTotals(LedgerModel):
    month: str
    total_amount: Money
    paid_amount: Money


class DashboardRead(LedgerModel):
    customers_count: int
    sales_count: int
    late_count: int
    collected: Money
    outstanding: Money
    collection_rate: int
    average_sale: int
    payments_count: int
    completion_rate: int
    month_sales_count: int
    month_collected: Money
    upcoming: list[UpcomingInstallment] = Field(default_factory=list)


class ReportRead(LedgerModel):
    period: ReportPeriod
    summary: SalesSummary
    top_customers: list[TopCustomer] = Field(default_factory=list)
    monthly: list[MonthlyTotals] = Field(default_factory=list)


class LateSale(LedgerModel):
    sale: Sale
    customer_phone: str = ""
    remaining: Money
    days_since_activity: int
