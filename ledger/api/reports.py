from __future__ import annotations

from fastapi import APIRouter

from ..schemas import DashboardRead, LateSale, ReportPeriod, ReportRead, UpcomingInstallment
from ..services import get_dashboard, get_report, list_late_sales, list_upcoming_installments
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


@router.get("/dashboard", response_model=DashboardRead)
async def dashboard_endpoint(session: SessionDep, current: CurrentSession) -> DashboardRead:
    return await get_dashboard(session)


@router.get("/period", response_model=ReportRead)
async def period_report_endpoint(
    session: SessionDep, current: CurrentSession, period: ReportPeriod = ReportPeriod.MONTH
) -> ReportRead:
    return await get_report(session, period)


@router.get("/late", response_model=list[LateSale])
async def late_sales_endpoint(session: SessionDep, current: CurrentSession) -> list[LateSale]:
    return await list_late_sales(session)


@router.get("/upcoming", response_model=list[UpcomingInstallment])
async def upcoming_installments_endpoint(
    session: SessionDep, current: CurrentSession
) -> list[UpcomingInstallment]:
    return await list_upcoming_installments(session)
