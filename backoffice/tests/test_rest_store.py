from __future__ import annotations

import json
import unittest
from datetime import date, datetime

import httpx
import pytest

from backoffice.ingest.rows import RawSaleRow
from backoffice.ingest.sales_import import run_import
from backoffice.reports.b2b import record_transaction, toggle_payment_status
from backoffice.reports.expenses import summarize_expenses
from backoffice.store.base import StoreError
from backoffice.store.rest import RestStore, in_filter


class FakeBackend:
    """Minimal in-memory stand-in for the hosted table API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.clients = [{"id": 7, "name": "Ana"}]
        self.reject_client: str | None = None
        self.html_sale_client: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        params = request.url.params
        if request.method == "GET" and table == "products":
            return httpx.Response(
                200,
                json=[{"id": 1, "name": "CUBA Cherry Strong", "brand": "CUBA", "buy_price": "4.00", "sell_price": 6, "stock": 3}],
            )
        if request.method == "GET" and table == "clients":
            return httpx.Response(200, json=[c for c in self.clients if f'"{c["name"]}"' in params["name"]])
        if request.method == "POST" and table == "clients":
            (payload,) = json.loads(request.content)
            if payload["name"] == self.reject_client:
                return httpx.Response(409, json={"message": "duplicate key value"})
            record = {"id": 100 + len(self.clients), **payload}
            self.clients.append(record)
            return httpx.Response(201, json=[record])
        if request.method == "POST" and table == "sales":
            (payload,) = json.loads(request.content)
            if payload["client_id"] == self.html_sale_client:
                return httpx.Response(201, text="<html>gateway</html>")
            return httpx.Response(201, json=[{"id": 55, **payload}])
        if request.method == "POST" and table == "sale_items":
            return httpx.Response(201)
        if request.method == "GET" and table == "sales":
            return httpx.Response(200, json=[{"id": 55, "client_id": 7, "total_amount": 18, "total_profit": 5, "created_at": "2025-01-13T00:00:00"}])
        if request.method == "GET" and table == "sale_items":
            return httpx.Response(
                200,
                json=[{"sale_id": 55, "product_id": 1, "quantity": 2, "unit_price": 6, "unit_profit": 2, "products": {"name": "CUBA Cherry Strong", "brand": "CUBA"}}],
            )
        if request.method == "POST" and table in {"b2b_partners", "b2b_transactions", "expenses"}:
            (payload,) = json.loads(request.content)
            return httpx.Response(201, json=[{"id": 9, **payload}])
        if request.method == "GET" and table == "b2b_partners":
            return httpx.Response(200, json=[{"id": 3, "name": "Quiosque", "default_commission": "0.50"}])
        if request.method == "GET" and table == "b2b_transactions":
            return httpx.Response(
                200,
                json=[{"id": 9, "sku": "VELO", "payment_status": "Pendente", "b2b_partners": {"name": "Quiosque", "location": "Faro"}}],
            )
        if request.method == "GET" and table == "expenses":
            return httpx.Response(200, json=[{"id": 1, "description": "Renda", "amount": "450.00", "expense_date": "2025-03-01"}])
        if request.method in {"DELETE", "PATCH"}:
            return httpx.Response(204)
        return httpx.Response(404, json={"message": f"no route for {request.method} {table}"})


class TestRestStore(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()
        client = httpx.Client(
            base_url="https://example.test/rest/v1",
            transport=httpx.MockTransport(self.backend),
            headers={"apikey": "k", "Authorization": "Bearer k"},
        )
        self.store = RestStore(client)

    def tearDown(self) -> None:
        self.store.close()

    def test_fetch_products(self) -> None:
        (product,) = self.store.fetch_products()
        self.assertEqual(product.name, "CUBA Cherry Strong")
        self.assertAlmostEqual(product.buy_price, 4.0)
        self.assertEqual(self.backend.requests[0].url.params["select"], "id,name,brand,buy_price,sell_price,stock")

    def test_find_or_create_clients_batches_lookup(self) -> None:
        ids, errors = self.store.find_or_create_clients(["Ana", "Rui", "Ana"], location="Importado")
        self.assertEqual(errors, {})
        self.assertEqual(ids["Ana"], 7)
        self.assertIn("Rui", ids)
        methods = [(r.method, r.url.path.rsplit("/", 1)[-1]) for r in self.backend.requests]
        self.assertEqual(methods, [("GET", "clients"), ("POST", "clients")])
        created = json.loads(self.backend.requests[1].content)
        self.assertEqual(created, [{"name": "Rui", "location": "Importado"}])

    def test_client_creation_failure_is_per_name(self) -> None:
        self.backend.reject_client = "Rui"
        ids, errors = self.store.find_or_create_clients(["Rui", "Eva"])
        self.assertIn("Eva", ids)
        self.assertIn("duplicate key value", errors["Rui"])

    def test_create_sale_and_items(self) -> None:
        sale_id = self.store.create_sale(7, 18.0, 5.0, created_at="2025-01-13")
        self.assertEqual(sale_id, 55)
        self.store.create_sale_items(sale_id, [{"product_id": 1, "quantity": 3, "unit_price": 6.0, "unit_profit": 1.5}])
        sent = json.loads(self.backend.requests[-1].content)
        self.assertEqual(sent, [{"sale_id": 55, "product_id": 1, "quantity": 3, "unit_price": 6.0, "unit_profit": 1.5}])
        self.assertEqual(self.backend.requests[0].headers["Prefer"], "return=representation")

    def test_delete_all_sales_deletes_lines_first(self) -> None:
        self.store.delete_all_sales()
        tables = [r.url.path.rsplit("/", 1)[-1] for r in self.backend.requests]
        self.assertEqual(tables, ["sale_items", "sales"])

    def test_fetch_sale_items_flattens_product(self) -> None:
        (item,) = self.store.fetch_sale_items([55])
        self.assertEqual(item["product_name"], "CUBA Cherry Strong")
        self.assertNotIn("products", item)

    def test_fetch_sales_filters_by_date(self) -> None:
        (sale,) = self.store.fetch_sales(datetime(2025, 1, 1))
        self.assertEqual(sale["id"], 55)
        self.assertEqual(self.backend.requests[0].url.params["created_at"], "gte.2025-01-01T00:00:00")

    def test_non_json_body_becomes_store_error(self) -> None:
        self.backend.html_sale_client = 7
        with self.assertRaises(StoreError) as ctx:
            self.store.create_sale(7, 18.0, 5.0)
        self.assertIn("not JSON", str(ctx.exception))

    def test_non_json_sale_response_only_fails_that_sale(self) -> None:
        self.backend.html_sale_client = 7
        rows = [
            RawSaleRow(date="13-01-2025", client_name="Ana", product_name="CUBA Cherry Strong", unit_price=6.0),
            RawSaleRow(date="13-01-2025", client_name="Rui", product_name="CUBA Cherry Strong", unit_price=6.0),
        ]
        report = run_import(rows, self.store, {})
        self.assertEqual(report.imported_sales, 1)
        self.assertEqual(list(report.failed_sales), [("2025-01-13", "Ana")])

    def test_created_row_without_id_becomes_store_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json=[])
            return httpx.Response(201, json=[{"name": "Rui"}])

        self.store.client = httpx.Client(base_url="https://example.test/rest/v1", transport=httpx.MockTransport(handler))
        with self.assertRaises(StoreError):
            self.store.create_sale(7, 1.0, 0.0)
        ids, errors = self.store.find_or_create_clients(["Rui"])
        self.assertEqual(ids, {})
        self.assertIn("Rui", errors)

    def test_product_row_without_id_becomes_store_error(self) -> None:
        self.store.client = httpx.Client(
            base_url="https://example.test/rest/v1",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[{"name": "X"}])),
        )
        with self.assertRaises(StoreError):
            self.store.fetch_products()

    def test_record_transaction_posts_settlement(self) -> None:
        trans_id = record_transaction(self.store, 3, sku="VELO", sales_count=4, total_sales_value=20.0)
        self.assertEqual(trans_id, 9)
        (sent,) = json.loads(self.backend.requests[-1].content)
        self.assertEqual(sent["commission_rate"], 0.5)
        self.assertEqual(sent["commission_total"], 2.0)
        self.assertEqual(sent["amount_receivable"], 18.0)

    def test_fetch_b2b_transactions_flattens_partner(self) -> None:
        (trans,) = self.store.fetch_b2b_transactions()
        self.assertEqual(trans["partner_name"], "Quiosque")
        self.assertNotIn("b2b_partners", trans)
        self.assertEqual(self.backend.requests[0].url.params["order"], "created_at.desc")

    def test_toggle_payment_status_patches(self) -> None:
        self.assertEqual(toggle_payment_status(self.store, 9), "Pago")
        patch = self.backend.requests[-1]
        self.assertEqual((patch.method, patch.url.params["id"]), ("PATCH", "eq.9"))
        self.assertEqual(json.loads(patch.content), {"payment_status": "Pago"})

    def test_fetch_expenses_sends_both_bounds(self) -> None:
        summary = summarize_expenses(self.store, date(2025, 3, 1), date(2025, 3, 31))
        self.assertAlmostEqual(summary.total, 450.0)
        bounds = self.backend.requests[0].url.params.get_list("expense_date")
        self.assertEqual(bounds, ["gte.2025-03-01", "lte.2025-03-31"])

    def test_http_error_becomes_store_error(self) -> None:
        with self.assertRaises(StoreError) as ctx:
            self.store._request("GET", "inventory_counts")
        self.assertIn("404", str(ctx.exception))


def test_in_filter_quotes_values():
    assert in_filter(['Ana', 'Rui "o" Lima', "a,b"]) == 'in.("Ana","Rui \\"o\\" Lima","a,b")'


def test_connect_requires_configuration():
    with pytest.raises(ValueError):
        RestStore.connect("${SUPABASE_URL}", "key")
