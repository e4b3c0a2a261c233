from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..schemas.common import utcnow
from ..schemas.report import DashboardRead, LateSale, ReportPeriod, ReportRead, UpcomingInstallment
from . import metrics, store
from .lateness import days_since_activity


async def get_dashboard(session: AsyncSession, *, now: Optional[datetime] = None) -> DashboardRead:
    now = now or utcnow()
    customers = await store.load_customers(session)
    sales = await store.load_sales(session)
    settings = await store.load_settings(session)
    return metrics.build_dashboard(
        customers, sales, now, settings, window_days=get_settings().upcoming_window_days
    )


async def get_report(
    session: AsyncSession,
    period: ReportPeriod = ReportPeriod.MONTH,
    *,
    now: Optional[datetime] = None,
) -> ReportRead:
    now = now or utcnow()
    customers = await store.load_customers(session)
    sales = await store.load_sales(session)
    settings = await store.load_settings(session)
    return metrics.build_report(sales, now, settings, period, customers=customers)


async def list_late_sales(
    session: AsyncSession, *, now: Optional[datetime] = None
) -> list[LateSale]:
    """Unfinished sales with no payment for longer than the configured threshold."""
    now = now or utcnow()
    sales = await store.load_sales(session)
    settings = await store.load_settings(session)
    phones = {c.id: c.phone for c in await store.load_customers(session)}
    return [
        LateSale(
            sale=sale,
            customer_phone=phones.get(sale.customer_id, ""),
            remaining=sale.remaining_amount,
            days_since_activity=days_since_activity(sale, now),
        )
        for sale in metrics.late_sales(sales, now, settings.effective_late_days)
    ]


async def list_upcoming_installments(
    session: AsyncSession, *, now: Optional[datetime] = None
) -> list[UpcomingInstallment]:
    now = now or utcnow()
    sales = await store.load_sales(session)
    return metrics.upcoming_installments(sales, now, get_settings().upcoming_window_days)
