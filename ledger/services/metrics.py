"""Derived figures for the dashboard and reports.

All functions are pure folds over already-loaded records; ``now`` and the
lateness threshold are always passed in.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from ..schemas.common import ZERO, round_half_up
from ..schemas.customer import Customer
from ..schemas.preferences import LedgerSettings
from ..schemas.report import (
    DashboardRead,
    MonthlyTotals,
    ReportPeriod,
    ReportRead,
    SalesSummary,
    TopCustomer,
    UpcomingInstallment,
)
from ..schemas.sale import Sale, SaleRead, SaleStatus
from .installments import add_months
from .lateness import DEFAULT_LATE_DAYS, is_sale_late

UPCOMING_WINDOW_DAYS = 7


def _percent(part: Decimal, whole: Decimal) -> int:
    if not whole:
        return 0
    return round_half_up(Decimal(part) / Decimal(whole) * 100)


def _average(total: Decimal, count: int) -> int:
    if not count:
        return 0
    return round_half_up(Decimal(total) / count)


def sale_status(sale: Sale, now: datetime, late_days: int = DEFAULT_LATE_DAYS) -> SaleStatus:
    if sale.is_completed:
        return SaleStatus.COMPLETED
    if is_sale_late(sale, now, late_days):
        return SaleStatus.LATE
    return SaleStatus.ACTIVE


def progress_percent(sale: Sale) -> int:
    if sale.total_amount <= 0:
        return 0
    return min(100, _percent(sale.paid_amount, sale.total_amount))


def to_sale_read(sale: Sale, now: datetime, late_days: int = DEFAULT_LATE_DAYS) -> SaleRead:
    return SaleRead(
        **sale.model_dump(),
        remaining=sale.remaining_amount,
        status=sale_status(sale, now, late_days),
        progress_percent=progress_percent(sale),
    )


def _in_month(moment: datetime, year: int, month: int) -> bool:
    return moment.year == year and moment.month == month


def filter_by_period(sales: Iterable[Sale], period: ReportPeriod, now: datetime) -> list[Sale]:
    """Keep the sales created in the current month or year; ``all`` keeps everything."""
    period = ReportPeriod(period)
    if period == ReportPeriod.MONTH:
        return [s for s in sales if _in_month(s.date, now.year, now.month)]
    if period == ReportPeriod.YEAR:
        return [s for s in sales if s.date.year == now.year]
    return list(sales)


def late_sales(
    sales: Iterable[Sale], now: datetime, late_days: int = DEFAULT_LATE_DAYS
) -> list[Sale]:
    return [s for s in sales if not s.is_completed and is_sale_late(s, now, late_days)]


def summarize_sales(
    sales: Sequence[Sale], now: datetime, late_days: int = DEFAULT_LATE_DAYS
) -> SalesSummary:
    total = sum((s.total_amount for s in sales), ZERO)
    collected = sum((s.paid_amount for s in sales), ZERO)
    payments_count = sum(len(s.payments) for s in sales)

    completed = late = 0
    for sale in sales:
        status = sale_status(sale, now, late_days)
        if status == SaleStatus.COMPLETED:
            completed += 1
        elif status == SaleStatus.LATE:
            late += 1

    return SalesSummary(
        sales_count=len(sales),
        total_amount=total,
        collected=collected,
        outstanding=total - collected,
        collection_rate=_percent(collected, total),
        completed_count=completed,
        active_count=len(sales) - completed - late,
        late_count=late,
        average_sale=_average(total, len(sales)),
        payments_count=payments_count,
        average_payment=_average(collected, payments_count),
    )


def top_customers(
    sales: Iterable[Sale],
    limit: int = 5,
    names: Optional[Mapping[str, str]] = None,
) -> list[TopCustomer]:
    """Rank customers by the total value of their sales.

    Ties keep the order in which customers first appear.
    """
    totals: dict[str, TopCustomer] = {}
    for sale in sales:
        entry = totals.get(sale.customer_id)
        if entry is None:
            name = (names or {}).get(sale.customer_id) or sale.customer_name
            entry = totals[sale.customer_id] = TopCustomer(
                customer_id=sale.customer_id, name=name, sales_count=0, total=ZERO
            )
        entry.sales_count += 1
        entry.total += sale.total_amount
    ranked = sorted(totals.values(), key=lambda item: item.total, reverse=True)
    return ranked[:limit]


def _days_until(due: datetime, now: datetime) -> int:
    return math.ceil((due - now).total_seconds() / 86400)


def upcoming_installments(
    sales: Iterable[Sale], now: datetime, window_days: int = UPCOMING_WINDOW_DAYS
) -> list[UpcomingInstallment]:
    """Unpaid installments falling due between ``now`` and ``now + window_days``.

    A sale without a schedule counts as one installment of its remaining
    balance, due on the sale's due date. Sales with nothing left to pay are
    skipped whatever their schedule says.
    """
    horizon = now + timedelta(days=window_days)
    upcoming: list[UpcomingInstallment] = []

    def _add(sale: Sale, number: int, amount: Decimal, due: datetime) -> None:
        upcoming.append(
            UpcomingInstallment(
                sale_id=sale.id,
                customer_id=sale.customer_id,
                customer_name=sale.customer_name,
                product=sale.product,
                number=number,
                amount=amount,
                due_date=due,
                days_until=_days_until(due, now),
            )
        )

    for sale in sales:
        if sale.remaining_amount <= 0:
            continue
        if sale.installments_schedule:
            for installment in sale.installments_schedule:
                if not installment.paid and now <= installment.due_date <= horizon:
                    _add(sale, installment.number, installment.amount, installment.due_date)
        elif sale.due_date is not None:
            if now <= sale.due_date <= horizon:
                _add(sale, 1, sale.remaining_amount, sale.due_date)

    upcoming.sort(key=lambda item: item.due_date)
    return upcoming


def monthly_rollup(sales: Sequence[Sale], now: datetime, months: int = 6) -> list[MonthlyTotals]:
    """Sale and paid totals per calendar month, oldest first, ending with the current month."""
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    rollup: list[MonthlyTotals] = []
    for offset in range(months - 1, -1, -1):
        start = add_months(month_start, -offset)
        in_month = [s for s in sales if _in_month(s.date, start.year, start.month)]
        rollup.append(
            MonthlyTotals(
                month=f"{start.year:04d}-{start.month:02d}",
                total_amount=sum((s.total_amount for s in in_month), ZERO),
                paid_amount=sum((s.paid_amount for s in in_month), ZERO),
            )
        )
    return rollup


def build_dashboard(
    customers: Sequence[Customer],
    sales: Sequence[Sale],
    now: datetime,
    settings: LedgerSettings,
    window_days: int = UPCOMING_WINDOW_DAYS,
) -> DashboardRead:
    late_days = settings.effective_late_days
    summary = summarize_sales(sales, now, late_days)
    this_month = filter_by_period(sales, ReportPeriod.MONTH, now)
    return DashboardRead(
        customers_count=len(customers),
        sales_count=summary.sales_count,
        late_count=summary.late_count,
        collected=summary.collected,
        outstanding=summary.outstanding,
        collection_rate=summary.collection_rate,
        average_sale=summary.average_sale,
        payments_count=summary.payments_count,
        completion_rate=_percent(Decimal(summary.completed_count), Decimal(summary.sales_count)),
        month_sales_count=len(this_month),
        month_collected=sum((s.paid_amount for s in this_month), ZERO),
        upcoming=upcoming_installments(sales, now, window_days),
    )


def build_report(
    sales: Sequence[Sale],
    now: datetime,
    settings: LedgerSettings,
    period: ReportPeriod = ReportPeriod.MONTH,
    customers: Optional[Sequence[Customer]] = None,
) -> ReportRead:
    period = ReportPeriod(period)
    selected = filter_by_period(sales, period, now)
    names = {c.id: c.name for c in customers} if customers else None
    return ReportRead(
        period=period,
        summary=summarize_sales(selected, now, settings.effective_late_days),
        top_customers=top_customers(selected, names=names),
        monthly=monthly_rollup(sales, now),
    )
