from __future__ import annotations

from datetime import date

import pytest

from backoffice.db.models import B2BTransaction
from backoffice.reports.b2b import (
    STATUS_PAID,
    STATUS_PENDING,
    filter_transactions,
    next_status,
    outstanding,
    record_transaction,
    settle,
    toggle_payment_status,
)
from backoffice.store.base import StoreError


def test_settle_commission_is_per_unit():
    settlement = settle(sales_count=24, total_sales_value=144.0, commission_rate=1.5)
    assert settlement.commission_total == pytest.approx(36.0)
    assert settlement.amount_receivable == pytest.approx(108.0)


def test_settle_without_sales():
    settlement = settle(0, 0, 2.0)
    assert (settlement.commission_total, settlement.amount_receivable) == (0.0, 0.0)


def test_next_status_flips():
    assert next_status(STATUS_PENDING) == STATUS_PAID
    assert next_status(STATUS_PAID) == STATUS_PENDING


def test_record_transaction_uses_partner_default_commission(session, store):
    partner_id = store.create_b2b_partner({"name": "Tabacaria Central", "location": "Porto", "default_commission": 0.5})
    trans_id = record_transaction(
        store,
        partner_id,
        sku="CUBA Cherry Strong",
        sales_count=10,
        total_sales_value=60.0,
        qty_delivered=20,
        last_delivery_date=date(2025, 3, 1),
        payment_deadline="2025-03-31",
    )

    trans = session.get(B2BTransaction, trans_id)
    assert trans.commission_rate == pytest.approx(0.5)
    assert trans.commission_total == pytest.approx(5.0)
    assert trans.amount_receivable == pytest.approx(55.0)
    assert trans.payment_status == STATUS_PENDING
    assert trans.payment_deadline == date(2025, 3, 31)

    (listed,) = store.fetch_b2b_transactions()
    assert listed["partner_name"] == "Tabacaria Central"
    assert listed["partner_location"] == "Porto"


def test_explicit_rate_overrides_default(store):
    partner_id = store.create_b2b_partner({"name": "Quiosque", "default_commission": 0.5})
    record_transaction(store, partner_id, sku="VELO", sales_count=4, total_sales_value=20.0, commission_rate=1.0)
    (listed,) = store.fetch_b2b_transactions()
    assert listed["amount_receivable"] == pytest.approx(16.0)


def test_toggle_payment_status(session, store):
    partner_id = store.create_b2b_partner({"name": "Quiosque"})
    trans_id = record_transaction(store, partner_id, sku="VELO", sales_count=1, total_sales_value=5.0)

    assert toggle_payment_status(store, trans_id) == STATUS_PAID
    assert session.get(B2BTransaction, trans_id).payment_status == STATUS_PAID
    assert toggle_payment_status(store, trans_id) == STATUS_PENDING


def test_toggle_unknown_transaction(store):
    with pytest.raises(StoreError):
        toggle_payment_status(store, 999)


def test_invalid_date_is_store_error(store):
    partner_id = store.create_b2b_partner({"name": "Quiosque"})
    with pytest.raises(StoreError, match="payment_deadline"):
        record_transaction(store, partner_id, sku="X", payment_deadline="31/03/2025")


def test_outstanding_and_filter():
    transactions = [
        {"partner_name": "Tabacaria Central", "sku": "CUBA", "amount_receivable": 55.0, "payment_status": STATUS_PENDING},
        {"partner_name": "Quiosque", "sku": "VELO", "amount_receivable": 16.0, "payment_status": STATUS_PAID},
        {"partner_name": None, "sku": "velo mint", "amount_receivable": "4.50", "payment_status": STATUS_PENDING},
    ]
    assert outstanding(transactions) == pytest.approx(59.5)
    assert [t["sku"] for t in filter_transactions(transactions, "Velo")] == ["VELO", "velo mint"]
    assert [t["sku"] for t in filter_transactions(transactions, "central")] == ["CUBA"]
