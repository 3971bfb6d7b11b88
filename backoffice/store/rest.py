"""
Store backed by the hosted table API (PostgREST dialect, as served under
``<project>/rest/v1``).

Calls are sequential and never retried; any transport or HTTP error surfaces
as `StoreError` carrying the backend's message.
"""
from __future__ import annotations

import logging
import os
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import httpx

from backoffice.store.base import BackOfficeStore, ProductRecord, RecordId, StoreError, unique_names

logger = logging.getLogger(__name__)

CONN_T = float(os.getenv("HTTP_CONNECT_TIMEOUT", "5"))
LIMITS = httpx.Limits(max_connections=4, max_keepalive_connections=2, keepalive_expiry=30)

PRODUCT_COLUMNS = "id,name,brand,buy_price,sell_price,stock"
# keeps `in.(...)` filters well under common URL length limits
IN_CHUNK = 80


def _quote(value: Any) -> str:
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def in_filter(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(_quote(v) for v in values) + ")"


def _ilike_exact(name: str) -> str:
    # escape LIKE wildcards so the match stays exact (case-insensitive only)
    escaped = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"ilike.{escaped}"


def _chunks(values: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _field(row: Any, key: str, what: str) -> Any:
    if not isinstance(row, Mapping) or row.get(key) is None:
        raise StoreError(f"{what}: backend row has no {key!r}")
    return row[key]


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


class RestStore(BackOfficeStore):
    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    @classmethod
    def connect(cls, base_url: str, service_key: str, timeout_s: float = 30.0) -> "RestStore":
        if not base_url or "${" in base_url:
            raise ValueError("Hosted store URL is not configured (set SUPABASE_URL).")
        if not service_key or "${" in service_key:
            raise ValueError("Hosted store key is not configured (set SUPABASE_SERVICE_KEY).")
        headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        client = httpx.Client(
            base_url=base_url.rstrip("/") + "/rest/v1",
            headers=headers,
            timeout=httpx.Timeout(timeout_s, connect=CONN_T),
            limits=LIMITS,
        )
        return cls(client)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RestStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Any = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self.client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {table}: {exc}") from exc
        if response.is_error:
            raise StoreError(f"{method} {table}: {response.status_code} {_error_message(response)}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"{method} {table}: {response.status_code} response is not JSON") from exc

    def fetch_products(self) -> List[ProductRecord]:
        rows = self._request("GET", "products", params={"select": PRODUCT_COLUMNS, "order": "id"})
        return [ProductRecord.from_row(row) for row in rows or []]

    def find_products_by_name(self, name: str) -> List[ProductRecord]:
        rows = self._request(
            "GET",
            "products",
            params={"select": PRODUCT_COLUMNS, "name": _ilike_exact(name.strip()), "order": "id"},
        )
        return [ProductRecord.from_row(row) for row in rows or []]

    def update_product(self, product_id: RecordId, **fields: Any) -> None:
        self._request(
            "PATCH",
            "products",
            params={"id": f"eq.{product_id}"},
            json=fields,
            prefer="return=minimal",
        )

    def find_or_create_clients(
        self, names: Sequence[str], location: Optional[str] = None
    ) -> Tuple[Dict[str, RecordId], Dict[str, str]]:
        wanted = unique_names(names)
        ids: Dict[str, RecordId] = {}
        errors: Dict[str, str] = {}

        for chunk in _chunks(wanted, IN_CHUNK):
            rows = self._request(
                "GET",
                "clients",
                params={"select": "id,name", "name": in_filter(chunk), "order": "id"},
            )
            for row in rows or []:
                ids.setdefault(_field(row, "name", "GET clients"), _field(row, "id", "GET clients"))

        for name in wanted:
            if name in ids:
                continue
            try:
                created = self._request(
                    "POST",
                    "clients",
                    json=[{"name": name, "location": location}],
                    prefer="return=representation",
                )
            except StoreError as exc:
                errors[name] = str(exc)
                continue
            if not isinstance(created, list) or not created:
                errors[name] = "backend returned no client record"
                continue
            try:
                ids[name] = _field(created[0], "id", "POST clients")
            except StoreError as exc:
                errors[name] = str(exc)
        return ids, errors

    def create_sale(
        self,
        client_id: RecordId,
        total_amount: float,
        total_profit: float,
        created_at: Optional[str] = None,
    ) -> RecordId:
        payload: Dict[str, Any] = {
            "client_id": client_id,
            "total_amount": total_amount,
            "total_profit": total_profit,
        }
        if created_at is not None:
            payload["created_at"] = created_at
        created = self._request("POST", "sales", json=[payload], prefer="return=representation")
        if not isinstance(created, list) or not created:
            raise StoreError("POST sales: backend returned no sale record")
        return _field(created[0], "id", "POST sales")

    def create_sale_items(self, sale_id: RecordId, items: Sequence[Mapping[str, Any]]) -> None:
        rows = [
            {
                "sale_id": sale_id,
                "product_id": item["product_id"],
                "quantity": item["quantity"],
                "unit_price": item["unit_price"],
                "unit_profit": item["unit_profit"],
            }
            for item in items
        ]
        self._request("POST", "sale_items", json=rows, prefer="return=minimal")

    def delete_all_sales(self) -> None:
        # lines reference sales, so they go first
        self._request("DELETE", "sale_items", params={"id": "neq.0"})
        self._request("DELETE", "sales", params={"id": "neq.0"})

    def fetch_sales(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"select": "*", "order": "created_at"}
        if since is not None:
            params["created_at"] = f"gte.{since.isoformat()}"
        return list(self._request("GET", "sales", params=params) or [])

    def fetch_sale_items(self, sale_ids: Sequence[RecordId]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for chunk in _chunks(list(sale_ids), IN_CHUNK):
            rows = self._request(
                "GET",
                "sale_items",
                params={
                    "select": "sale_id,product_id,quantity,unit_price,unit_profit,products(name,brand)",
                    "sale_id": f"in.({','.join(str(s) for s in chunk)})",
                },
            )
            for row in rows or []:
                product = row.pop("products", None) or {}
                row["product_name"] = product.get("name")
                row["brand"] = product.get("brand")
                out.append(row)
        return out

    def _insert(self, table: str, fields: Mapping[str, Any]) -> RecordId:
        created = self._request("POST", table, json=[dict(fields)], prefer="return=representation")
        if not isinstance(created, list) or not created:
            raise StoreError(f"POST {table}: backend returned no record")
        return _field(created[0], "id", f"POST {table}")

    def fetch_b2b_partners(self) -> List[Dict[str, Any]]:
        return list(self._request("GET", "b2b_partners", params={"select": "*", "order": "name"}) or [])

    def create_b2b_partner(self, fields: Mapping[str, Any]) -> RecordId:
        return self._insert("b2b_partners", fields)

    def fetch_b2b_transactions(self) -> List[Dict[str, Any]]:
        rows = self._request(
            "GET",
            "b2b_transactions",
            params={"select": "*,b2b_partners(name,location)", "order": "created_at.desc"},
        )
        out: List[Dict[str, Any]] = []
        for row in rows or []:
            partner = row.pop("b2b_partners", None) or {}
            row["partner_name"] = partner.get("name")
            row["partner_location"] = partner.get("location")
            out.append(row)
        return out

    def create_b2b_transaction(self, fields: Mapping[str, Any]) -> RecordId:
        return self._insert("b2b_transactions", fields)

    def update_b2b_payment_status(self, transaction_id: RecordId, status: str) -> None:
        self._request(
            "PATCH",
            "b2b_transactions",
            params={"id": f"eq.{transaction_id}"},
            json={"payment_status": status},
            prefer="return=minimal",
        )

    def create_expense(self, fields: Mapping[str, Any]) -> RecordId:
        return self._insert("expenses", fields)

    def fetch_expenses(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
        # both bounds filter the same column, so params go as pairs
        params: List[Tuple[str, str]] = [("select", "*"), ("order", "expense_date.desc")]
        if start is not None:
            params.append(("expense_date", f"gte.{start.isoformat()}"))
        if end is not None:
            params.append(("expense_date", f"lte.{end.isoformat()}"))
        return list(self._request("GET", "expenses", params=params) or [])


__all__ = ["RestStore", "in_filter"]
