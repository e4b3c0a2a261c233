from __future__ import annotations

import re
from datetime import datetime, time
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.activity import ActivityType
from ..schemas.common import utcnow
from ..schemas.sale import Payment, PaymentCreate, Sale, SaleCreate, SaleFilter, SaleUpdate
from ..utils.formatting import format_money
from . import store
from .activity import add_activity
from .contracts import contract_needs_regeneration, generate_contract_text, stamp_contract_id
from .errors import CustomerNotFoundError, PaymentRejectedError, SaleNotFoundError, ValidationFailed
from .installments import apply_payment, generate_schedule, resync_sale, resync_sales
from .metrics import sale_status
from .mirror import SALES_COLLECTION, mirror_delete, mirror_save

_SEQUENCE_SUFFIX = re.compile(r"-(\d+)$")


def generate_sale_id(sales: list[Sale], now: datetime) -> str:
    """``SALE-YYYYMMDD-NNNN``, numbered per calendar day."""
    prefix = f"SALE-{now:%Y%m%d}-"
    highest = 0
    for sale in sales:
        if not sale.id.startswith(prefix):
            continue
        match = _SEQUENCE_SUFFIX.search(sale.id)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:04d}"


def _payment_id(sale: Sale, now: datetime) -> str:
    candidate = int(now.timestamp() * 1000)
    taken = {p.id for p in sale.payments}
    while f"p{candidate}" in taken:
        candidate += 1
    return f"p{candidate}"


def _find_index(sales: list[Sale], sale_id: str) -> int:
    index = next((i for i, s in enumerate(sales) if s.id == sale_id), None)
    if index is None:
        raise SaleNotFoundError("Sale not found")
    return index


async def create_sale(
    session: AsyncSession, payload: SaleCreate, *, now: Optional[datetime] = None
) -> Sale:
    """Register a credit sale with its installment schedule and contract text."""
    now = now or utcnow()
    if not payload.customer_id or not payload.product or payload.total_amount < 1:
        raise ValidationFailed("Customer, product and amount are required.")

    customers = await store.load_customers(session)
    customer = next((c for c in customers if c.id == payload.customer_id), None)
    if customer is None:
        raise CustomerNotFoundError("Customer not found")

    first_due = payload.due_date or now
    try:
        schedule = generate_schedule(
            payload.total_amount,
            payload.installments_count,
            first_due,
            payload.installment_amount,
        )
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc

    sales = await store.load_sales(session)
    sale_id = generate_sale_id(sales, now)

    contract_text = payload.contract_text
    if contract_needs_regeneration(contract_text, payload.total_amount):
        late_days = (await store.load_settings(session)).effective_late_days
        contract_text = generate_contract_text(
            customer,
            payload.product,
            payload.total_amount,
            Decimal("0"),
            payload.total_amount,
            payload.installments_count,
            payload.due_date,
            late_days,
            installment_amount=payload.installment_amount,
            issued_at=now,
        )
    contract_text = stamp_contract_id(contract_text, sale_id)

    sale = Sale(
        id=sale_id,
        customer_id=customer.id,
        customer_name=customer.name,
        product=payload.product,
        total_amount=payload.total_amount,
        paid_amount=Decimal("0"),
        payments=[],
        contract_text=contract_text,
        installments_count=payload.installments_count or 1,
        installments_schedule=schedule,
        due_date=first_due,
        date=now,
    )
    sales.insert(0, sale)
    sales, _ = resync_sales(sales)
    await store.save_sales(session, sales)
    await add_activity(
        session,
        ActivityType.SALE,
        f"New sale: {sale.product} for {customer.name} - {format_money(sale.total_amount)}",
        {"saleId": sale.id, "customerId": customer.id},
    )
    await session.commit()
    mirror_save(SALES_COLLECTION, sale, sale.id)
    return sale


async def update_sale(session: AsyncSession, sale_id: str, payload: SaleUpdate) -> Sale:
    """Edit product, total amount or contract text; payments and due dates stay as they are."""
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "product" in changes and not changes["product"]:
        raise ValidationFailed("Product is required.")
    if "total_amount" in changes and changes["total_amount"] < 1:
        raise ValidationFailed("Amount must be at least 1.")

    sales = await store.load_sales(session)
    index = _find_index(sales, sale_id)
    sale = resync_sale(sales[index].model_copy(update=changes))
    sales[index] = sale
    await store.save_sales(session, sales)
    await add_activity(
        session, ActivityType.SALE, f"Sale updated: {sale.product}", {"saleId": sale.id}
    )
    await session.commit()
    mirror_save(SALES_COLLECTION, sale, sale.id)
    return sale


async def delete_sale(session: AsyncSession, sale_id: str) -> None:
    sales = await store.load_sales(session)
    sale = sales[_find_index(sales, sale_id)]
    await store.save_sales(session, [s for s in sales if s.id != sale_id])
    await add_activity(
        session,
        ActivityType.SALE,
        f"Sale deleted: {sale.product} ({sale.customer_name})",
        {"saleId": sale_id},
    )
    await session.commit()
    mirror_delete(SALES_COLLECTION, sale_id)


async def get_sale(session: AsyncSession, sale_id: str) -> Optional[Sale]:
    sales = await store.load_sales(session)
    return next((s for s in sales if s.id == sale_id), None)


def _matches(sale: Sale, filters: SaleFilter, now: datetime, late_days: int) -> bool:
    query = (filters.query or "").strip().lower()
    if query and not (
        query in sale.customer_name.lower()
        or query in sale.product.lower()
        or query in sale.id.lower()
    ):
        return False
    if filters.customer_id and sale.customer_id != filters.customer_id:
        return False
    if filters.status and sale_status(sale, now, late_days) != filters.status:
        return False
    if filters.date_from and sale.date < filters.date_from:
        return False
    if filters.date_to:
        end_of_day = datetime.combine(filters.date_to.date(), time.max, tzinfo=filters.date_to.tzinfo)
        if sale.date > end_of_day:
            return False
    if filters.amount_min is not None and sale.total_amount < filters.amount_min:
        return False
    if filters.amount_max is not None and sale.total_amount > filters.amount_max:
        return False
    return True


async def list_sales(
    session: AsyncSession,
    filters: Optional[SaleFilter] = None,
    *,
    now: Optional[datetime] = None,
) -> list[Sale]:
    sales = await store.load_sales(session)
    if filters is None:
        return sales
    now = now or utcnow()
    late_days = (await store.load_settings(session)).effective_late_days
    return [s for s in sales if _matches(s, filters, now, late_days)]


async def record_payment(
    session: AsyncSession,
    sale_id: str,
    payload: PaymentCreate,
    *,
    now: Optional[datetime] = None,
) -> Sale:
    """Append a payment to a sale and apply it to the installment schedule.

    Rejected without any change when the amount is not positive or is larger
    than the remaining balance.
    """
    now = now or utcnow()
    amount = Decimal(payload.amount)
    if amount <= 0:
        raise PaymentRejectedError("Enter a payment amount.")

    sales = await store.load_sales(session)
    index = _find_index(sales, sale_id)
    sale = resync_sale(sales[index])
    if amount > sale.remaining_amount:
        raise PaymentRejectedError("Payment exceeds the remaining balance.")

    payment = Payment(
        id=_payment_id(sale, now),
        amount=amount,
        note=payload.note or f"Installment {len(sale.payments) + 1}",
        date=now,
    )
    updates: dict = {
        "payments": [*sale.payments, payment],
        "paid_amount": sale.paid_amount + amount,
    }
    if sale.installments_schedule:
        updates["installments_schedule"] = apply_payment(sale.installments_schedule, amount)
    sale = sale.model_copy(update=updates)
    sales[index] = sale

    await store.save_sales(session, sales)
    await add_activity(
        session,
        ActivityType.PAYMENT,
        f"Payment received: {format_money(amount)} - {sale.product} ({sale.customer_name})",
        {"saleId": sale.id, "paymentId": payment.id},
    )
    await session.commit()
    mirror_save(SALES_COLLECTION, sale, sale.id)
    return sale


async def sync_installments(session: AsyncSession) -> bool:
    """Resync every schedule from its payments; writes only when something changed."""
    sales = await store.load_sales(session)
    synced, changed = resync_sales(sales)
    if changed:
        await store.save_sales(session, synced)
        await session.commit()
    return changed
