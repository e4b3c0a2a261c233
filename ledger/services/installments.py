"""Installment schedule generation and reconciliation.

Every function here is pure: schedules and sales are copied, never mutated
in place. Installments are always visited in due-date order, ties keeping
their schedule order.

There is a single reconciliation rule, :func:`apply_payment`. A full resync
resets the schedule to its original amounts and applies the whole paid total
through that same rule, so replaying payments one by one and resyncing from
the sum always end in the same schedule.
"""

from __future__ import annotations

from calendar import monthrange
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from typing import Optional

from ..schemas.common import ZERO
from ..schemas.sale import Installment, Payment, Sale

OPENING_PAYMENT_NOTE = "Opening balance"


def add_months(source: datetime, months: int) -> datetime:
    """Return ``source`` shifted by a number of months, clamping the day to the month end."""
    month = source.month - 1 + months
    year = source.year + month // 12
    month = month % 12 + 1
    day = min(source.day, monthrange(year, month)[1])
    return source.replace(year=year, month=month, day=day)


def split_total(total: Decimal, count: int) -> list[Decimal]:
    """Split ``total`` into ``count`` whole-unit parts that add up exactly.

    The first ``total mod count`` parts carry one extra unit, so 1000 over 3
    gives 334, 333, 333. Any fractional remainder lands on the last part.
    """
    if count < 1:
        raise ValueError("Installment count must be at least 1.")
    total = Decimal(total)
    base = (total / count).to_integral_value(rounding=ROUND_FLOOR)
    remainder = total - base * count
    extra_units = int(remainder.to_integral_value(rounding=ROUND_FLOOR))
    parts = [base + 1 if index < extra_units else base for index in range(count)]
    parts[-1] += remainder - extra_units
    return parts


def generate_schedule(
    total: Decimal,
    count: int,
    first_due: datetime,
    installment_amount: Optional[Decimal] = None,
) -> list[Installment]:
    """Build the schedule of a new sale: one installment per month from ``first_due``.

    With an explicit ``installment_amount`` the first ``count - 1`` installments
    use it and the last one takes whatever is left of the total.
    """
    if count < 1:
        return []
    total = Decimal(total)
    if installment_amount:
        amount = Decimal(installment_amount)
        last = total - amount * (count - 1)
        if last <= 0:
            raise ValueError("Installment amount is too large for the sale total.")
        amounts = [amount] * (count - 1) + [last]
    else:
        amounts = split_total(total, count)

    return [
        Installment(
            number=index + 1,
            amount=value,
            original_amount=value,
            due_date=add_months(first_due, index),
        )
        for index, value in enumerate(amounts)
    ]


def _due_order(schedule: Sequence[Installment]) -> list[int]:
    return sorted(range(len(schedule)), key=lambda index: schedule[index].due_date)


def restore_original_amounts(schedule: Sequence[Installment], total: Decimal) -> list[Installment]:
    """Fill in ``original_amount`` on installments stored without one.

    Such installments hold what was still owed on them, so the sale total
    minus the stored amounts is what earlier payments took off. That
    shortfall is handed back in due order, topping each installment up to the
    regular (largest) amount of the non-final installments, and anything left
    goes on the final one.
    """
    restored = [installment.model_copy() for installment in schedule]
    missing = {index for index, installment in enumerate(restored) if installment.original_amount is None}
    if not missing:
        return restored
    for index in missing:
        restored[index].original_amount = restored[index].amount

    order = _due_order(restored)
    shortfall = Decimal(total) - sum((i.original_amount for i in restored), ZERO)
    if shortfall <= 0:
        return restored
    regular = max((restored[index].original_amount for index in order[:-1]), default=ZERO)
    for index in order[:-1]:
        if shortfall <= 0:
            break
        if index not in missing:
            continue
        installment = restored[index]
        top_up = min(max(regular - installment.original_amount, ZERO), shortfall)
        installment.original_amount += top_up
        shortfall -= top_up
    if shortfall > 0:
        restored[order[-1]].original_amount += shortfall
    return restored


def apply_payment(schedule: Sequence[Installment], amount: Decimal) -> list[Installment]:
    """Apply one payment to the unpaid installments, earliest due first.

    A payment that covers an installment's remaining amount marks it paid
    (showing its original amount again) and the rest moves on to the next
    one; a smaller payment lowers the remaining amount of the installment it
    stops on.
    """
    updated = [installment.model_copy() for installment in schedule]
    budget = Decimal(amount)
    for index in _due_order(updated):
        if budget <= 0:
            break
        installment = updated[index]
        if installment.paid:
            continue
        if budget >= installment.amount:
            budget -= installment.amount
            installment.paid = True
            if installment.original_amount is not None:
                installment.amount = installment.original_amount
            continue
        installment.amount -= budget
        budget = ZERO
    return updated


def reset_schedule(schedule: Sequence[Installment]) -> list[Installment]:
    """Return the schedule as it was created: original amounts, nothing paid."""
    reset: list[Installment] = []
    for installment in schedule:
        original = installment.original_amount
        if original is None:
            original = installment.amount
        reset.append(installment.model_copy(update={"amount": original, "paid": False, "paid_date": None}))
    return reset


def resync_schedule(schedule: Sequence[Installment], paid_amount: Decimal) -> list[Installment]:
    """Recompute the whole schedule from a cumulative paid total."""
    return apply_payment(reset_schedule(schedule), paid_amount)


def replay_payments(schedule: Sequence[Installment], amounts: Iterable[Decimal]) -> list[Installment]:
    updated = reset_schedule(schedule)
    for amount in amounts:
        updated = apply_payment(updated, amount)
    return updated


def with_opening_payment(sale: Sale) -> Sale:
    """Record a paid total that no payment entry accounts for as an opening payment.

    Older documents kept only ``paid_amount``. The unexplained part becomes a
    payment dated at the sale date, so later payments add to it instead of
    replacing it and ``paid_amount`` stays the sum of the payments.
    """
    recorded = sum((p.amount for p in sale.payments), ZERO)
    opening = sale.paid_amount - recorded
    if opening <= 0:
        return sale
    taken = {p.id for p in sale.payments}
    candidate = int(sale.date.timestamp() * 1000)
    while f"p{candidate}" in taken:
        candidate += 1
    payment = Payment(id=f"p{candidate}", amount=opening, note=OPENING_PAYMENT_NOTE, date=sale.date)
    return sale.model_copy(update={"payments": [payment, *sale.payments]})


def resync_sale(sale: Sale) -> Sale:
    """Rebuild a sale's schedule from its payment history.

    A paid total not covered by payment entries is first recorded as an
    opening payment, then the payments are replayed in timestamp order.
    Schedules stored without original amounts get them restored first.
    Sales without a schedule only get the opening payment.
    """
    sale = with_opening_payment(sale)
    if not sale.installments_schedule:
        return sale
    schedule = restore_original_amounts(sale.installments_schedule, sale.total_amount)
    payments = sorted(sale.payments, key=lambda payment: payment.date)
    schedule = replay_payments(schedule, [p.amount for p in payments])
    paid_amount = sum((p.amount for p in payments), ZERO)
    return sale.model_copy(update={"installments_schedule": schedule, "paid_amount": paid_amount})


def resync_sales(sales: Sequence[Sale]) -> tuple[list[Sale], bool]:
    """Bulk repair. Returns the resynced sales and whether anything changed."""
    changed = False
    result: list[Sale] = []
    for sale in sales:
        synced = resync_sale(sale)
        if synced.model_dump() != sale.model_dump():
            changed = True
        result.append(synced)
    return result, changed


def schedule_outstanding(schedule: Sequence[Installment]) -> Decimal:
    """Sum still owed across unpaid installments."""
    return sum((i.amount for i in schedule if not i.paid), ZERO)
