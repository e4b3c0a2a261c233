from __future__ import annotations

from datetime import datetime
from decimal import ROUND_CEILING, Decimal
from typing import Optional

from ..config import get_settings
from ..schemas.customer import Customer
from ..utils.formatting import format_money

CONTRACT_ID_PLACEHOLDER = "[Contract No.]"
BUYER_PLACEHOLDER = "[Buyer name]"
PRODUCT_PLACEHOLDER = "[Product]"
_TEMPLATE_MARKERS = (BUYER_PLACEHOLDER, PRODUCT_PLACEHOLDER)


def _long_date(value: datetime) -> str:
    return value.strftime("%d %B %Y")


def generate_contract_text(
    customer: Optional[Customer],
    product: str,
    total_amount: Decimal,
    paid_amount: Decimal,
    remaining_amount: Decimal,
    installments_count: int,
    first_due: Optional[datetime],
    late_days: int,
    *,
    installment_amount: Optional[Decimal] = None,
    contract_id: Optional[str] = None,
    issued_at: Optional[datetime] = None,
) -> str:
    """Render the installment sale agreement printed for the buyer."""
    settings = get_settings()
    issued = first_due or issued_at or datetime.now()
    per_installment = installment_amount or Decimal("0")
    if not installment_amount and installments_count > 0:
        per_installment = (Decimal(total_amount) / installments_count).to_integral_value(
            rounding=ROUND_CEILING
        )

    name = customer.name if customer else BUYER_PLACEHOLDER
    phone = customer.phone if customer and customer.phone else "[Phone]"
    address = customer.address if customer and customer.address else "[Address]"

    if installments_count > 0:
        first_due_text = _long_date(first_due) if first_due else "to be scheduled"
        payment_terms = "\n".join(
            [
                "- Payment method: equal monthly installments",
                f"- Number of installments: {installments_count}",
                f"- Installment amount: {format_money(per_installment)}",
                f"- First installment due: {first_due_text}",
            ]
        )
        schedule_note = "- Installments are paid monthly on the dates of the attached schedule.\n"
    else:
        payment_terms = "- Payment method: single payment on delivery"
        schedule_note = ""

    return f"""INSTALLMENT SALE AGREEMENT
Contract No.: {contract_id or CONTRACT_ID_PLACEHOLDER}

Made on {_long_date(issued)} ({issued.strftime('%d/%m/%Y')}) between:

Seller: {settings.seller_name}
Buyer: {name}
Phone: {phone}
Address: {address}

1. Subject
The seller sells and the buyer buys the following product: {product or PRODUCT_PLACEHOLDER}, under the terms below.

2. Price and payment
- Total amount: {format_money(total_amount)}
{payment_terms}
- Paid in advance: {format_money(paid_amount)}
- Remaining amount: {format_money(remaining_amount)}
{schedule_note}
3. Buyer obligations
1. The buyer pays every installment on its due date.
2. If any installment is more than {late_days} days overdue, the seller may:
   - claim the whole remaining amount at once
   - add a late fee of 2% per month on the overdue amount
   - take legal action to recover the amount owed

4. Seller obligations
1. The seller delivers the product as described.
2. The seller keeps all records related to this agreement.
3. The seller records every payment in the ledger.

5. General terms
1. This agreement binds both parties.
2. Any amendment must be made in writing and accepted by both parties.
3. The agreement remains in force until every amount due has been paid.

6. Signatures
Both parties have read and accepted the terms above.
"""


def contract_needs_regeneration(text: Optional[str], total_amount: Decimal) -> bool:
    """Whether a submitted contract text is empty, a bare template or shows another total."""
    if not text or not text.strip():
        return True
    if any(marker in text for marker in _TEMPLATE_MARKERS):
        return True
    if "Total amount:" in text and format_money(total_amount) not in text:
        return True
    return False


def stamp_contract_id(text: str, contract_id: str) -> str:
    return text.replace(CONTRACT_ID_PLACEHOLDER, contract_id, 1)
