from __future__ import annotations

from pydantic import Field

from .common import LedgerModel
from .customer import Customer
from .sale import Sale


class SearchResults(LedgerModel):
    query: str
    customers: list[Customer] = Field(default_factory=list)
    sales: list[Sale] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.customers and not self.sales
