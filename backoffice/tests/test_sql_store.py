"""
SQL store behaviour on an in-memory SQLite database.
"""
from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import create_engine, select

from backoffice.db.models import Base, Client, Product, Sale, SaleItem
from backoffice.store.base import StoreError


def test_metadata_create_all() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    assert {t.name for t in Base.metadata.sorted_tables} == {
        "products",
        "clients",
        "sales",
        "sale_items",
        "b2b_partners",
        "b2b_transactions",
        "expenses",
    }


def test_fetch_products(store, catalog_products):
    products = store.fetch_products()
    assert [p.name for p in products] == ["CUBA Cherry Strong", "VELO Mighty Peppermint", "Greatest Cold Dry 16"]
    assert products[0].buy_price == pytest.approx(4.0)
    assert products[2].buy_price is None


def test_find_products_by_name_ignores_case(store, catalog_products):
    (match,) = store.find_products_by_name(" velo mighty PEPPERMINT")
    assert match.id == catalog_products["velo"].id
    assert store.find_products_by_name("VELO") == []


def test_update_product(session, store, catalog_products):
    product_id = catalog_products["velo"].id
    store.update_product(product_id, stock=12, sell_price=5.5)
    product = session.get(Product, product_id)
    assert (product.stock, product.sell_price) == (12, pytest.approx(5.5))


def test_update_product_rejects_unknown_fields(store, catalog_products):
    with pytest.raises(ValueError):
        store.update_product(catalog_products["velo"].id, colour="blue")


def test_update_missing_product(store):
    with pytest.raises(StoreError):
        store.update_product(999, stock=1)


def test_find_or_create_clients_dedupes(session, store):
    session.add(Client(name="Ana", location="Porto"))
    session.commit()

    ids, errors = store.find_or_create_clients(["Ana", "Rui", "Rui", "", "Eva"], location="Importado")

    assert errors == {}
    assert list(ids) == ["Ana", "Rui", "Eva"]
    names = [c.name for c in session.scalars(select(Client).order_by(Client.id)).all()]
    assert names == ["Ana", "Rui", "Eva"]


def test_find_or_create_clients_prefers_oldest_duplicate(session, store):
    session.add_all([Client(name="Ana"), Client(name="Ana")])
    session.commit()
    first_id = session.scalars(select(Client.id).order_by(Client.id)).first()
    ids, _ = store.find_or_create_clients(["Ana"])
    assert ids["Ana"] == first_id


def test_sale_roundtrip_and_delete(session, store, catalog_products):
    ids, _ = store.find_or_create_clients(["Ana"])
    sale_id = store.create_sale(ids["Ana"], 18.0, 5.0, created_at="2025-01-13")
    store.create_sale_items(
        sale_id,
        [{"product_id": catalog_products["cherry"].id, "quantity": 3, "unit_price": 6.0, "unit_profit": 1.0}],
    )

    sales = store.fetch_sales(datetime(2025, 1, 1))
    assert [s["id"] for s in sales] == [sale_id]
    assert store.fetch_sales(datetime(2025, 2, 1)) == []

    (item,) = store.fetch_sale_items([sale_id])
    assert item["product_name"] == "CUBA Cherry Strong"
    assert item["brand"] == "CUBA"

    store.delete_all_sales()
    assert session.scalars(select(Sale)).all() == []
    assert session.scalars(select(SaleItem)).all() == []


def test_failed_write_leaves_session_usable(session, store, catalog_products):
    with pytest.raises(StoreError):
        store.create_sale_items(123, [{"product_id": None, "quantity": None, "unit_price": 1.0, "unit_profit": 0.0}])
    ids, errors = store.find_or_create_clients(["Ana"])
    assert errors == {} and "Ana" in ids


def test_invalid_sale_date(store):
    with pytest.raises(StoreError, match="invalid sale date"):
        store.create_sale(1, 1.0, 0.0, created_at="13-13-13")
