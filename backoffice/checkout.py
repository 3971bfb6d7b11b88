"""
Counter checkout: build a cart from in-stock products and record it as a sale.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from backoffice.store.base import BackOfficeStore, ProductRecord, RecordId

logger = logging.getLogger(__name__)


class InsufficientStockError(ValueError):
    pass


@dataclass
class CartLine:
    product: ProductRecord
    qty: int = 1

    @property
    def unit_price(self) -> float:
        return self.product.sell_price or 0.0

    @property
    def unit_profit(self) -> float:
        return self.unit_price - (self.product.buy_price or 0.0)


class Cart:
    def __init__(self) -> None:
        self._lines: Dict[RecordId, CartLine] = {}

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def add(self, product: ProductRecord) -> CartLine:
        line = self._lines.get(product.id)
        if line is None:
            if product.stock < 1:
                raise InsufficientStockError(f"{product.name} is out of stock")
            line = self._lines[product.id] = CartLine(product=product)
            return line
        if line.qty >= product.stock:
            raise InsufficientStockError(f"Only {product.stock} of {product.name} in stock")
        line.qty += 1
        return line

    def remove(self, product_id: RecordId) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def total(self) -> float:
        return sum(line.unit_price * line.qty for line in self._lines.values())

    def total_profit(self) -> float:
        return sum(line.unit_profit * line.qty for line in self._lines.values())


def checkout(cart: Cart, store: BackOfficeStore, client_id: Optional[RecordId]) -> RecordId:
    """Record the cart as a sale, add its lines and take the quantities out of stock.

    Raises ValueError when the cart is empty or no client is selected; store
    failures propagate as StoreError. The cart is emptied on success.
    """
    if not len(cart) or client_id in (None, ""):
        raise ValueError("Select products and a client before checking out.")

    sale_id = store.create_sale(client_id=client_id, total_amount=cart.total(), total_profit=cart.total_profit())
    store.create_sale_items(
        sale_id,
        [
            {
                "product_id": line.product.id,
                "quantity": line.qty,
                "unit_price": line.unit_price,
                "unit_profit": line.unit_profit,
            }
            for line in cart.lines
        ],
    )
    for line in cart.lines:
        store.update_product(line.product.id, stock=line.product.stock - line.qty)

    logger.info("Sale %s recorded: %d line(s), total %.2f", sale_id, len(cart), cart.total())
    cart.clear()
    return sale_id


__all__ = ["Cart", "CartLine", "InsufficientStockError", "checkout"]
