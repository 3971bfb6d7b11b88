#!/usr/bin/env python3
"""
Consignment (B2B) settlement.

Partners sell our stock and keep a fixed commission per unit sold:

    commission_total  = sales_count * commission_rate
    amount_receivable = total_sales_value - commission_total

A transaction is either pending ("Pendente") or paid ("Pago").
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from backoffice.store import BackOfficeStore, StoreError, open_store
from backoffice.store.base import RecordId
from backoffice.utils.config import load_config

logger = logging.getLogger(__name__)

STATUS_PENDING = "Pendente"
STATUS_PAID = "Pago"


@dataclass(frozen=True)
class Settlement:
    commission_total: float
    amount_receivable: float


def settle(sales_count: float, total_sales_value: float, commission_rate: float) -> Settlement:
    commission = float(sales_count or 0) * float(commission_rate or 0)
    return Settlement(
        commission_total=round(commission, 2),
        amount_receivable=round(float(total_sales_value or 0) - commission, 2),
    )


def _iso(value: Union[date, str, None]) -> Optional[str]:
    if value is None or value == "":
        return None
    return value.isoformat() if isinstance(value, date) else str(value)


def record_transaction(
    store: BackOfficeStore,
    partner_id: RecordId,
    *,
    sku: str,
    sales_count: int = 0,
    total_sales_value: float = 0.0,
    commission_rate: Optional[float] = None,
    qty_delivered: int = 0,
    current_stock: int = 0,
    returns_count: int = 0,
    last_delivery_date: Union[date, str, None] = None,
    payment_deadline: Union[date, str, None] = None,
    payment_status: str = STATUS_PENDING,
) -> RecordId:
    """
    Store a settled transaction for `partner_id`.

    Without an explicit `commission_rate` the partner's default commission is
    used (0 when the partner is unknown).
    """
    if commission_rate is None:
        partner = next((p for p in store.fetch_b2b_partners() if p.get("id") == partner_id), None)
        commission_rate = float(partner.get("default_commission") or 0) if partner else 0.0

    settlement = settle(sales_count, total_sales_value, commission_rate)
    fields: Dict[str, Any] = {
        "partner_id": partner_id,
        "sku": sku,
        "qty_delivered": qty_delivered,
        "current_stock": current_stock,
        "sales_count": sales_count,
        "total_sales_value": total_sales_value,
        "commission_rate": commission_rate,
        "returns_count": returns_count,
        "payment_status": payment_status,
        "commission_total": settlement.commission_total,
        "amount_receivable": settlement.amount_receivable,
        "last_delivery_date": _iso(last_delivery_date),
        "payment_deadline": _iso(payment_deadline),
    }
    transaction_id = store.create_b2b_transaction(fields)
    logger.info(
        "B2B %s for partner %s: commission %.2f, receivable %.2f",
        sku,
        partner_id,
        settlement.commission_total,
        settlement.amount_receivable,
    )
    return transaction_id


def next_status(current: Optional[str]) -> str:
    return STATUS_PAID if current == STATUS_PENDING else STATUS_PENDING


def toggle_payment_status(store: BackOfficeStore, transaction_id: RecordId) -> str:
    """Flip a transaction between pending and paid; returns the new status."""
    current = next((t for t in store.fetch_b2b_transactions() if t.get("id") == transaction_id), None)
    if current is None:
        raise StoreError(f"b2b transaction {transaction_id} not found")
    status = next_status(current.get("payment_status"))
    store.update_b2b_payment_status(transaction_id, status)
    return status


def outstanding(transactions: Iterable[Mapping[str, Any]]) -> float:
    """Receivable still owed by partners (pending transactions only)."""
    return round(
        sum(float(t.get("amount_receivable") or 0) for t in transactions if t.get("payment_status") != STATUS_PAID),
        2,
    )


def filter_transactions(transactions: Iterable[Mapping[str, Any]], term: str) -> List[Mapping[str, Any]]:
    """Case-insensitive match on partner name or SKU."""
    needle = term.strip().lower()
    return [
        t
        for t in transactions
        if needle in str(t.get("partner_name") or "").lower() or needle in str(t.get("sku") or "").lower()
    ]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="List consignment transactions or flip one's payment status.")
    parser.add_argument("--config", type=Path, help="Path to CONFIG.yaml")
    parser.add_argument("--search", default="", help="Filter by partner name or SKU")
    parser.add_argument("--toggle", type=int, metavar="ID", help="Flip transaction ID between Pendente and Pago")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    config = load_config(args.config) if args.config else load_config()
    currency = config.app.currency

    try:
        with open_store(config) as store:
            if args.toggle is not None:
                status = toggle_payment_status(store, args.toggle)
                print(f"Transaction {args.toggle}: {status}")
                return 0
            transactions = store.fetch_b2b_transactions()
    except (StoreError, ValueError) as exc:
        logger.error("B2B report failed: %s", exc)
        return 1

    if args.search:
        transactions = filter_transactions(transactions, args.search)
    for t in transactions:
        print(
            f"{t.get('id')!s:>5}  {t.get('partner_name') or '-'}  {t.get('sku')}  "
            f"sold {t.get('sales_count')}  commission {currency} {float(t.get('commission_total') or 0):,.2f}  "
            f"receivable {currency} {float(t.get('amount_receivable') or 0):,.2f}  {t.get('payment_status')}"
        )
    print(f"Outstanding: {currency} {outstanding(transactions):,.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
