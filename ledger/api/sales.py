from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..schemas import PaymentCreate, SaleCreate, SaleFilter, SaleRead, SaleStatus, SaleUpdate
from ..schemas.common import utcnow
from ..services import (
    create_sale,
    delete_sale,
    get_sale,
    list_sales,
    load_ledger_settings,
    record_payment,
    sync_installments,
    update_sale,
)
from ..services.errors import (
    CustomerNotFoundError,
    SaleNotFoundError,
    ValidationFailed,
)
from ..services.metrics import to_sale_read
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


def sale_filters(
    q: Optional[str] = None,
    status: Optional[SaleStatus] = None,
    customer_id: Annotated[Optional[str], Query(alias="customerId")] = None,
    date_from: Annotated[Optional[datetime], Query(alias="dateFrom")] = None,
    date_to: Annotated[Optional[datetime], Query(alias="dateTo")] = None,
    amount_min: Annotated[Optional[Decimal], Query(alias="amountMin")] = None,
    amount_max: Annotated[Optional[Decimal], Query(alias="amountMax")] = None,
) -> SaleFilter:
    return SaleFilter(
        query=q,
        status=status,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        amount_min=amount_min,
        amount_max=amount_max,
    )


SaleFilterDep = Annotated[SaleFilter, Depends(sale_filters)]


async def _late_days(session) -> int:
    return (await load_ledger_settings(session)).effective_late_days


@router.post("", response_model=SaleRead, status_code=status.HTTP_201_CREATED)
async def create_sale_endpoint(
    payload: SaleCreate, session: SessionDep, current: CurrentSession
) -> SaleRead:
    try:
        sale = await create_sale(session, payload)
    except CustomerNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return to_sale_read(sale, utcnow(), await _late_days(session))


@router.get("", response_model=list[SaleRead])
async def list_sales_endpoint(
    filters: SaleFilterDep, session: SessionDep, current: CurrentSession
) -> list[SaleRead]:
    now = utcnow()
    sales = await list_sales(session, filters, now=now)
    late_days = await _late_days(session)
    return [to_sale_read(sale, now, late_days) for sale in sales]


@router.post("/sync")
async def sync_installments_endpoint(session: SessionDep, current: CurrentSession) -> dict[str, bool]:
    """Rebuild every installment schedule from the recorded payments."""
    return {"changed": await sync_installments(session)}


@router.get("/{sale_id}", response_model=SaleRead)
async def get_sale_endpoint(sale_id: str, session: SessionDep, current: CurrentSession) -> SaleRead:
    sale = await get_sale(session, sale_id)
    if not sale:
        raise HTTPException(status_code=404, detail="Sale not found")
    return to_sale_read(sale, utcnow(), await _late_days(session))


@router.patch("/{sale_id}", response_model=SaleRead)
async def update_sale_endpoint(
    sale_id: str,
    payload: SaleUpdate,
    session: SessionDep,
    current: CurrentSession,
) -> SaleRead:
    try:
        sale = await update_sale(session, sale_id, payload)
    except SaleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return to_sale_read(sale, utcnow(), await _late_days(session))


@router.delete("/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sale_endpoint(sale_id: str, session: SessionDep, current: CurrentSession) -> None:
    try:
        await delete_sale(session, sale_id)
    except SaleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/{sale_id}/payments", response_model=SaleRead, status_code=status.HTTP_201_CREATED)
async def record_payment_endpoint(
    sale_id: str,
    payload: PaymentCreate,
    session: SessionDep,
    current: CurrentSession,
) -> SaleRead:
    try:
        sale = await record_payment(session, sale_id, payload)
    except SaleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return to_sale_read(sale, utcnow(), await _late_days(session))
