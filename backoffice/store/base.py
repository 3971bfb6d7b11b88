"""
Record types and the operations every back-office store provides.

A store is the thin keyed-record layer in front of the hosted backend (or a
local SQL database standing in for it). Each write is its own transaction: a
failed call raises `StoreError` and leaves earlier writes in place.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

RecordId = Any


class StoreError(RuntimeError):
    """A single backend call failed."""


@dataclass(frozen=True)
class ProductRecord:
    id: RecordId
    name: str
    buy_price: Optional[float] = None
    sell_price: Optional[float] = None
    stock: int = 0
    brand: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProductRecord":
        if not isinstance(row, Mapping) or row.get("id") is None:
            raise StoreError(f"product row without id: {row!r}")
        return cls(
            id=row["id"],
            name=str(row.get("name") or ""),
            buy_price=_opt_float(row.get("buy_price")),
            sell_price=_opt_float(row.get("sell_price")),
            stock=int(row.get("stock") or 0),
            brand=row.get("brand"),
        )


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def unique_names(names: Iterable[str]) -> List[str]:
    """Drop blanks and repeats, keeping first-occurrence order."""
    seen: Dict[str, None] = {}
    for name in names:
        if name and name not in seen:
            seen[name] = None
    return list(seen)


class BackOfficeStore(ABC):
    @abstractmethod
    def fetch_products(self) -> List[ProductRecord]:
        ...

    @abstractmethod
    def find_products_by_name(self, name: str) -> List[ProductRecord]:
        """Case-insensitive exact name match."""

    @abstractmethod
    def update_product(self, product_id: RecordId, **fields: Any) -> None:
        ...

    @abstractmethod
    def find_or_create_clients(
        self, names: Sequence[str], location: Optional[str] = None
    ) -> Tuple[Dict[str, RecordId], Dict[str, str]]:
        """
        Resolve client names to ids, creating the missing ones.

        Returns ``(ids_by_name, errors_by_name)``. Names are matched exactly;
        a name is created at most once per call.
        """

    @abstractmethod
    def create_sale(
        self,
        client_id: RecordId,
        total_amount: float,
        total_profit: float,
        created_at: Optional[str] = None,
    ) -> RecordId:
        ...

    @abstractmethod
    def create_sale_items(self, sale_id: RecordId, items: Sequence[Mapping[str, Any]]) -> None:
        """Bulk insert lines with product_id, quantity, unit_price, unit_profit."""

    @abstractmethod
    def delete_all_sales(self) -> None:
        ...

    @abstractmethod
    def fetch_sales(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def fetch_sale_items(self, sale_ids: Sequence[RecordId]) -> List[Dict[str, Any]]:
        """Lines for the given sales, each carrying ``product_name`` and ``brand``."""

    @abstractmethod
    def fetch_b2b_partners(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def create_b2b_partner(self, fields: Mapping[str, Any]) -> RecordId:
        ...

    @abstractmethod
    def fetch_b2b_transactions(self) -> List[Dict[str, Any]]:
        """Newest first, each carrying ``partner_name`` and ``partner_location``."""

    @abstractmethod
    def create_b2b_transaction(self, fields: Mapping[str, Any]) -> RecordId:
        """Insert a settled transaction; dates are ISO strings."""

    @abstractmethod
    def update_b2b_payment_status(self, transaction_id: RecordId, status: str) -> None:
        ...

    @abstractmethod
    def create_expense(self, fields: Mapping[str, Any]) -> RecordId:
        ...

    @abstractmethod
    def fetch_expenses(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
        """Expenses dated within ``[start, end]`` (either bound optional), newest first."""


__all__ = ["BackOfficeStore", "ProductRecord", "RecordId", "StoreError", "unique_names"]
