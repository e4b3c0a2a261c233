from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.search import SearchResults
from . import store


async def global_search(session: AsyncSession, query: str) -> SearchResults:
    """Customers by name, phone or address and sales by customer name or product."""
    needle = query.strip()
    lowered = needle.lower()
    if not needle:
        return SearchResults(query=query)

    customers = [
        c
        for c in await store.load_customers(session)
        if lowered in c.name.lower() or needle in c.phone or lowered in c.address.lower()
    ]
    sales = [
        s
        for s in await store.load_sales(session)
        if lowered in s.customer_name.lower() or lowered in s.product.lower()
    ]
    return SearchResults(query=query, customers=customers, sales=sales)
