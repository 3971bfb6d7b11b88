"""
Historical sales import.

Reconciles a sales export against the current catalog and writes one sale per
(date, client) pair:

1. product names pass through the rename table, then are matched
   case-insensitively against the catalog;
2. dates are normalised to ISO where the format can be told apart;
3. rows sharing (date, client) become one sale, and rows for the same product
   inside it become one line.

Line merging keeps two different price views on purpose. The line's
``unit_price`` is the price of the *last* merged row, and the sale's
``total_amount`` is built from it. The line's profit is accumulated row by
row from each row's own price. A product sold at two prices on the same day
therefore reports a total that differs from the sum of its rows; historical
figures were produced that way and reimports must match them.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from backoffice.ingest.dates import is_iso_date, normalize_date
from backoffice.ingest.names import canonicalize, catalog_key
from backoffice.ingest.rows import RawSaleRow
from backoffice.store.base import BackOfficeStore, ProductRecord, RecordId, StoreError, unique_names

logger = logging.getLogger(__name__)

SaleKey = Tuple[str, str]


@dataclass(frozen=True)
class CatalogEntry:
    id: RecordId
    name: str
    cost_basis: Optional[float] = None


@dataclass
class SaleLineAggregate:
    product_id: RecordId
    quantity: int
    unit_price: float
    accumulated_profit: float

    @property
    def unit_profit(self) -> float:
        return self.accumulated_profit / self.quantity


@dataclass
class SaleAggregate:
    date: Optional[str]
    client_name: str
    items: Dict[RecordId, SaleLineAggregate] = field(default_factory=dict)

    @property
    def key(self) -> SaleKey:
        return (self.date or "", self.client_name)

    @property
    def total_amount(self) -> float:
        return sum(line.unit_price * line.quantity for line in self.items.values())

    @property
    def total_profit(self) -> float:
        return sum(line.accumulated_profit for line in self.items.values())

    def add(self, product_id: RecordId, quantity: int, unit_price: float, cost_basis: Optional[float]) -> None:
        profit = (unit_price - (cost_basis or 0)) * quantity
        line = self.items.get(product_id)
        if line is None:
            self.items[product_id] = SaleLineAggregate(
                product_id=product_id,
                quantity=quantity,
                unit_price=unit_price,
                accumulated_profit=profit,
            )
            return
        line.quantity += quantity
        line.unit_price = unit_price
        line.accumulated_profit += profit

    def line_records(self, sale_id: RecordId) -> List[Dict[str, Any]]:
        return [
            {
                "sale_id": sale_id,
                "product_id": line.product_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "unit_profit": line.unit_profit,
            }
            for line in self.items.values()
        ]


@dataclass
class ImportReport:
    rows_read: int = 0
    rows_accepted: int = 0
    malformed_rows: int = 0
    unrecognized_products: Counter = field(default_factory=Counter)
    suspect_dates: Counter = field(default_factory=Counter)
    client_failures: Dict[str, str] = field(default_factory=dict)
    failed_sales: Dict[SaleKey, str] = field(default_factory=dict)
    clients_resolved: int = 0
    total_sales: int = 0
    imported_sales: int = 0

    @property
    def unrecognized_rows(self) -> int:
        return sum(self.unrecognized_products.values())

    def log_summary(self) -> None:
        logger.info(
            "Rows: %d read, %d accepted, %d malformed, %d unrecognized product",
            self.rows_read,
            self.rows_accepted,
            self.malformed_rows,
            self.unrecognized_rows,
        )
        if self.unrecognized_products:
            logger.warning(
                "%d product name(s) not in catalog (missing catalog entry or rename): %s",
                len(self.unrecognized_products),
                ", ".join(sorted(self.unrecognized_products)),
            )
        if self.suspect_dates:
            logger.warning(
                "%d date value(s) could not be normalised and were kept as-is: %s",
                len(self.suspect_dates),
                ", ".join(sorted(self.suspect_dates)),
            )
        for name, message in self.client_failures.items():
            logger.error("Client %r could not be resolved: %s", name, message)
        logger.info("Sales imported: %d of %d", self.imported_sales, self.total_sales)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "rows_read": self.rows_read,
            "rows_accepted": self.rows_accepted,
            "malformed_rows": self.malformed_rows,
            "unrecognized_rows": self.unrecognized_rows,
            "unrecognized_products": dict(self.unrecognized_products),
            "suspect_dates": dict(self.suspect_dates),
            "client_failures": dict(self.client_failures),
            "failed_sales": {f"{d}|{c}": msg for (d, c), msg in self.failed_sales.items()},
            "total_sales": self.total_sales,
            "imported_sales": self.imported_sales,
        }


def build_catalog_index(products: Iterable[ProductRecord]) -> Dict[str, CatalogEntry]:
    """Index products by lower-cased, trimmed name (later duplicates win)."""
    index: Dict[str, CatalogEntry] = {}
    for product in products:
        key = catalog_key(product.name)
        if not key:
            continue
        if key in index:
            logger.warning("Duplicate catalog name %r (ids %s, %s); using the latter", key, index[key].id, product.id)
        index[key] = CatalogEntry(id=product.id, name=product.name, cost_basis=product.buy_price)
    return index


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _is_complete(row: RawSaleRow) -> bool:
    return bool(_clean(row.date) and _clean(row.client_name) and _clean(row.product_name))


def distinct_clients(rows: Iterable[RawSaleRow]) -> List[str]:
    """Client names of well-formed rows, first occurrence order."""
    return unique_names(_clean(row.client_name) for row in rows if _is_complete(row))


def aggregate_rows(
    rows: Iterable[RawSaleRow],
    catalog: Mapping[str, CatalogEntry],
    corrections: Mapping[str, str],
    report: Optional[ImportReport] = None,
) -> Dict[SaleKey, SaleAggregate]:
    """Group rows into sales keyed by (ISO date, client name), in input order."""
    report = report if report is not None else ImportReport()
    sales: Dict[SaleKey, SaleAggregate] = {}

    for row in rows:
        report.rows_read += 1
        if not _is_complete(row):
            report.malformed_rows += 1
            logger.debug("line %s: missing date, client or product; skipped", row.line_no)
            continue

        raw_date = _clean(row.date)
        date = normalize_date(raw_date)
        if not is_iso_date(date):
            report.suspect_dates[raw_date] += 1

        product_name = canonicalize(_clean(row.product_name), corrections)
        entry = catalog.get(catalog_key(product_name))
        if entry is None:
            report.unrecognized_products[product_name] += 1
            logger.debug("line %s: product %r not in catalog; skipped", row.line_no, product_name)
            continue

        client = _clean(row.client_name)
        key: SaleKey = (date or "", client)
        sale = sales.get(key)
        if sale is None:
            sale = sales[key] = SaleAggregate(date=date, client_name=client)
        sale.add(entry.id, row.quantity, row.unit_price, entry.cost_basis)
        report.rows_accepted += 1

    return sales


def resolve_clients(
    rows: Sequence[RawSaleRow],
    store: BackOfficeStore,
    location: Optional[str],
    report: ImportReport,
) -> Dict[str, RecordId]:
    names = distinct_clients(rows)
    try:
        ids, errors = store.find_or_create_clients(names, location=location)
    except StoreError as exc:
        logger.error("Client lookup failed: %s", exc)
        ids, errors = {}, {name: str(exc) for name in names}
    report.client_failures.update(errors)
    report.clients_resolved = len(ids)
    logger.info("Clients: %d resolved, %d failed", len(ids), len(errors))
    return ids


def emit_sales(
    sales: Mapping[SaleKey, SaleAggregate],
    client_ids: Mapping[str, RecordId],
    store: BackOfficeStore,
    report: ImportReport,
) -> None:
    """Persist each sale header then its lines; a failure only affects that sale."""
    report.total_sales = len(sales)
    for key, sale in sales.items():
        client_id = client_ids.get(sale.client_name)
        if client_id is None:
            report.failed_sales[key] = "client not resolved"
            logger.error("Sale %s|%s skipped: client not resolved", sale.date, sale.client_name)
            continue
        try:
            sale_id = store.create_sale(
                client_id=client_id,
                total_amount=sale.total_amount,
                total_profit=sale.total_profit,
                created_at=sale.date,
            )
            store.create_sale_items(sale_id, sale.line_records(sale_id))
        except StoreError as exc:
            report.failed_sales[key] = str(exc)
            logger.error("Sale %s|%s failed: %s", sale.date, sale.client_name, exc)
            continue
        report.imported_sales += 1
        if report.imported_sales % 20 == 0:
            logger.info("... %d sales imported", report.imported_sales)


def run_import(
    rows: Sequence[RawSaleRow],
    store: BackOfficeStore,
    corrections: Mapping[str, str],
    *,
    client_location: Optional[str] = None,
    dry_run: bool = False,
) -> ImportReport:
    """
    Import `rows` into `store`.

    The catalog is read once (a failure here propagates). In dry-run mode
    nothing is written: clients are neither looked up nor created.
    """
    report = ImportReport()
    products = store.fetch_products()
    catalog = build_catalog_index(products)
    logger.info("Catalog: %d products", len(products))

    client_ids: Dict[str, RecordId] = {}
    if not dry_run:
        client_ids = resolve_clients(rows, store, client_location, report)

    sales = aggregate_rows(rows, catalog, corrections, report)
    logger.info("Prepared %d sales", len(sales))

    if dry_run:
        report.total_sales = len(sales)
    else:
        emit_sales(sales, client_ids, store, report)
    return report


__all__ = [
    "CatalogEntry",
    "ImportReport",
    "SaleAggregate",
    "SaleLineAggregate",
    "aggregate_rows",
    "build_catalog_index",
    "distinct_clients",
    "emit_sales",
    "resolve_clients",
    "run_import",
]
