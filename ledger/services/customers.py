from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.activity import ActivityType
from ..schemas.common import ZERO, utcnow
from ..schemas.customer import (
    Customer,
    CustomerCategory,
    CustomerCreate,
    CustomerOverview,
    CustomerUpdate,
)
from . import store
from .activity import add_activity
from .errors import CustomerNotFoundError, ValidationFailed
from .lateness import is_sale_late
from .mirror import CUSTOMERS_COLLECTION, SALES_COLLECTION, mirror_delete, mirror_save


def _customer_id(existing: list[Customer]) -> str:
    candidate = int(utcnow().timestamp() * 1000)
    taken = {c.id for c in existing}
    while f"c{candidate}" in taken:
        candidate += 1
    return f"c{candidate}"


def _matches(customer: Customer, query: str) -> bool:
    lowered = query.lower()
    return (
        lowered in customer.name.lower()
        or query in customer.phone
        or lowered in customer.address.lower()
    )


async def create_customer(session: AsyncSession, payload: CustomerCreate) -> Customer:
    if not payload.name:
        raise ValidationFailed("Customer name is required.")
    customers = await store.load_customers(session)
    customer = Customer(
        id=_customer_id(customers),
        name=payload.name,
        phone=payload.phone,
        address=payload.address,
        notes=payload.notes,
        category=payload.category,
    )
    customers.append(customer)
    await store.save_customers(session, customers)
    await add_activity(
        session,
        ActivityType.CUSTOMER,
        f"New customer added: {customer.name}",
        {"customerId": customer.id},
    )
    await session.commit()
    mirror_save(CUSTOMERS_COLLECTION, customer, customer.id)
    return customer


async def update_customer(
    session: AsyncSession, customer_id: str, payload: CustomerUpdate
) -> Customer:
    customers = await store.load_customers(session)
    index = next((i for i, c in enumerate(customers) if c.id == customer_id), None)
    if index is None:
        raise CustomerNotFoundError("Customer not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes and not changes["name"]:
        raise ValidationFailed("Customer name is required.")
    customer = customers[index].model_copy(update=changes)
    customers[index] = customer
    await store.save_customers(session, customers)
    await add_activity(
        session,
        ActivityType.CUSTOMER,
        f"Customer details updated: {customer.name}",
        {"customerId": customer.id},
    )
    await session.commit()
    mirror_save(CUSTOMERS_COLLECTION, customer, customer.id)
    return customer


async def delete_customer(session: AsyncSession, customer_id: str) -> int:
    """Delete a customer together with every sale that references them.

    Returns the number of sales removed.
    """
    customers = await store.load_customers(session)
    customer = next((c for c in customers if c.id == customer_id), None)
    if customer is None:
        raise CustomerNotFoundError("Customer not found")

    sales = await store.load_sales(session)
    kept_sales = [s for s in sales if s.customer_id != customer_id]
    removed_sale_ids = [s.id for s in sales if s.customer_id == customer_id]

    await store.save_customers(session, [c for c in customers if c.id != customer_id])
    await store.save_sales(session, kept_sales)
    await add_activity(
        session,
        ActivityType.CUSTOMER,
        f"Customer deleted: {customer.name}",
        {"customerId": customer_id},
    )
    await session.commit()

    mirror_delete(CUSTOMERS_COLLECTION, customer_id)
    for sale_id in removed_sale_ids:
        mirror_delete(SALES_COLLECTION, sale_id)
    return len(removed_sale_ids)


async def get_customer(session: AsyncSession, customer_id: str) -> Optional[Customer]:
    customers = await store.load_customers(session)
    return next((c for c in customers if c.id == customer_id), None)


async def list_customers(
    session: AsyncSession,
    *,
    query: Optional[str] = None,
    category: Optional[CustomerCategory] = None,
) -> list[Customer]:
    customers = await store.load_customers(session)
    query = (query or "").strip()
    if query:
        customers = [c for c in customers if _matches(c, query)]
    if category:
        customers = [c for c in customers if c.category == category]
    return customers


async def customer_overview(
    session: AsyncSession,
    *,
    query: Optional[str] = None,
    category: Optional[CustomerCategory] = None,
    now: Optional[datetime] = None,
) -> list[CustomerOverview]:
    """Customers with the totals of their sales, as shown on the customers page."""
    now = now or utcnow()
    customers = await list_customers(session, query=query, category=category)
    sales = await store.load_sales(session)
    late_days = (await store.load_settings(session)).effective_late_days

    overview: list[CustomerOverview] = []
    for customer in customers:
        own = [s for s in sales if s.customer_id == customer.id]
        total = sum((s.total_amount for s in own), ZERO)
        paid = sum((s.paid_amount for s in own), ZERO)
        overview.append(
            CustomerOverview(
                customer=customer,
                sales_count=len(own),
                total_amount=total,
                paid_amount=paid,
                remaining_amount=total - paid,
                late_sales=sum(
                    1 for s in own if not s.is_completed and is_sale_late(s, now, late_days)
                ),
                completed_sales=sum(1 for s in own if s.is_completed),
            )
        )
    return overview
