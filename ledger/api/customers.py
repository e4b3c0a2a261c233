from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, status

from ..schemas import (
    Customer,
    CustomerCategory,
    CustomerCreate,
    CustomerOverview,
    CustomerUpdate,
)
from ..services import (
    create_customer,
    customer_overview,
    delete_customer,
    get_customer,
    list_customers,
    update_customer,
)
from ..services.errors import CustomerNotFoundError, ValidationFailed
from .dependencies import CurrentSession, SessionDep

router = APIRouter()


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def create_customer_endpoint(
    payload: CustomerCreate, session: SessionDep, current: CurrentSession
) -> Customer:
    try:
        return await create_customer(session, payload)
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("", response_model=list[Customer])
async def list_customers_endpoint(
    session: SessionDep,
    current: CurrentSession,
    q: Optional[str] = None,
    category: Optional[CustomerCategory] = None,
) -> list[Customer]:
    return await list_customers(session, query=q, category=category)


@router.get("/overview", response_model=list[CustomerOverview])
async def customer_overview_endpoint(
    session: SessionDep,
    current: CurrentSession,
    q: Optional[str] = None,
    category: Optional[CustomerCategory] = None,
) -> list[CustomerOverview]:
    return await customer_overview(session, query=q, category=category)


@router.get("/{customer_id}", response_model=Customer)
async def get_customer_endpoint(
    customer_id: str, session: SessionDep, current: CurrentSession
) -> Customer:
    customer = await get_customer(session, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.patch("/{customer_id}", response_model=Customer)
async def update_customer_endpoint(
    customer_id: str,
    payload: CustomerUpdate,
    session: SessionDep,
    current: CurrentSession,
) -> Customer:
    try:
        return await update_customer(session, customer_id, payload)
    except CustomerNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/{customer_id}")
async def delete_customer_endpoint(
    customer_id: str, session: SessionDep, current: CurrentSession
) -> dict[str, int]:
    """Delete a customer and every sale recorded for them."""
    try:
        removed = await delete_customer(session, customer_id)
    except CustomerNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"salesRemoved": removed}
