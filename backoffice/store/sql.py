"""SQLAlchemy-backed store (local database standing in for the hosted backend)."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import Date, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.db.models import B2BPartner, B2BTransaction, Client, Expense, Product, Sale, SaleItem
from backoffice.store.base import BackOfficeStore, ProductRecord, RecordId, StoreError, unique_names

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = {"name", "brand", "buy_price", "sell_price", "stock"}


def _product_record(product: Product) -> ProductRecord:
    return ProductRecord(
        id=product.id,
        name=product.name,
        buy_price=product.buy_price,
        sell_price=product.sell_price,
        stock=product.stock or 0,
        brand=product.brand,
    )


def _parse_created_at(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise StoreError(f"invalid sale date {value!r}") from exc


def _row_dict(obj: Any) -> Dict[str, Any]:
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


def _model_fields(model: Any, fields: Mapping[str, Any], what: str) -> Dict[str, Any]:
    """Keep the model's own columns, turning ISO strings into dates for date columns."""
    columns = {c.key: c for c in model.__table__.columns}
    unknown = set(fields) - set(columns)
    if unknown:
        raise ValueError(f"Unknown {what} fields: {', '.join(sorted(unknown))}")
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, str) and isinstance(columns[key].type, Date):
            try:
                value = date.fromisoformat(value.strip()[:10])
            except ValueError as exc:
                raise StoreError(f"invalid {what} {key} {value!r}") from exc
        out[key] = value
    return out


class SqlStore(BackOfficeStore):
    """Every write commits on its own so a failure only discards that write."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _write(self, what: str) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.debug("%s failed: %s", what, exc)
            raise StoreError(f"{what}: {exc.__class__.__name__}: {exc}") from exc

    def fetch_products(self) -> List[ProductRecord]:
        try:
            products = self.session.scalars(select(Product).order_by(Product.id)).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"fetch products: {exc}") from exc
        return [_product_record(p) for p in products]

    def find_products_by_name(self, name: str) -> List[ProductRecord]:
        key = name.strip().lower()
        try:
            products = self.session.scalars(
                select(Product).where(func.lower(Product.name) == key).order_by(Product.id)
            ).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"find product {name!r}: {exc}") from exc
        return [_product_record(p) for p in products]

    def update_product(self, product_id: RecordId, **fields: Any) -> None:
        unknown = set(fields) - PRODUCT_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {', '.join(sorted(unknown))}")
        with self._write(f"update product {product_id}"):
            product = self.session.get(Product, product_id)
            if product is None:
                raise StoreError(f"product {product_id} not found")
            for key, value in fields.items():
                setattr(product, key, value)

    def find_or_create_clients(
        self, names: Sequence[str], location: Optional[str] = None
    ) -> Tuple[Dict[str, RecordId], Dict[str, str]]:
        wanted = unique_names(names)
        ids: Dict[str, RecordId] = {}
        errors: Dict[str, str] = {}
        if not wanted:
            return ids, errors

        try:
            rows = self.session.execute(
                select(Client.id, Client.name).where(Client.name.in_(wanted)).order_by(Client.id)
            ).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"lookup clients: {exc}") from exc
        for client_id, name in rows:
            # duplicates already in the table: the oldest record wins
            ids.setdefault(name, client_id)

        for name in wanted:
            if name in ids:
                continue
            client = Client(name=name, location=location)
            try:
                with self._write(f"create client {name!r}"):
                    self.session.add(client)
                    self.session.flush()
            except StoreError as exc:
                errors[name] = str(exc)
                continue
            ids[name] = client.id
        return ids, errors

    def create_sale(
        self,
        client_id: RecordId,
        total_amount: float,
        total_profit: float,
        created_at: Optional[str] = None,
    ) -> RecordId:
        sale = Sale(
            client_id=client_id,
            total_amount=total_amount,
            total_profit=total_profit,
        )
        parsed = _parse_created_at(created_at)
        if parsed is not None:
            sale.created_at = parsed
        with self._write("create sale"):
            self.session.add(sale)
            self.session.flush()
        return sale.id

    def create_sale_items(self, sale_id: RecordId, items: Sequence[Mapping[str, Any]]) -> None:
        with self._write(f"create items for sale {sale_id}"):
            for item in items:
                self.session.add(
                    SaleItem(
                        sale_id=sale_id,
                        product_id=item["product_id"],
                        quantity=item["quantity"],
                        unit_price=item["unit_price"],
                        unit_profit=item["unit_profit"],
                    )
                )
            self.session.flush()

    def delete_all_sales(self) -> None:
        with self._write("delete sale items"):
            self.session.execute(delete(SaleItem))
        with self._write("delete sales"):
            self.session.execute(delete(Sale))

    def fetch_sales(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        stmt = select(Sale).order_by(Sale.created_at, Sale.id)
        if since is not None:
            stmt = stmt.where(Sale.created_at >= since)
        try:
            sales = self.session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"fetch sales: {exc}") from exc
        return [
            {
                "id": s.id,
                "client_id": s.client_id,
                "total_amount": s.total_amount,
                "total_profit": s.total_profit,
                "created_at": s.created_at,
            }
            for s in sales
        ]

    def fetch_sale_items(self, sale_ids: Sequence[RecordId]) -> List[Dict[str, Any]]:
        if not sale_ids:
            return []
        stmt = (
            select(SaleItem, Product.name, Product.brand)
            .outerjoin(Product, SaleItem.product_id == Product.id)
            .where(SaleItem.sale_id.in_(list(sale_ids)))
            .order_by(SaleItem.id)
        )
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"fetch sale items: {exc}") from exc
        return [
            {
                "sale_id": item.sale_id,
                "product_id": item.product_id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "unit_profit": item.unit_profit,
                "product_name": name,
                "brand": brand,
            }
            for item, name, brand in rows
        ]

    def fetch_b2b_partners(self) -> List[Dict[str, Any]]:
        try:
            partners = self.session.scalars(select(B2BPartner).order_by(B2BPartner.name)).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"fetch b2b partners: {exc}") from exc
        return [_row_dict(p) for p in partners]

    def create_b2b_partner(self, fields: Mapping[str, Any]) -> RecordId:
        partner = B2BPartner(**_model_fields(B2BPartner, fields, "b2b partner"))
        with self._write("create b2b partner"):
            self.session.add(partner)
            self.session.flush()
        return partner.id

    def fetch_b2b_transactions(self) -> List[Dict[str, Any]]:
        stmt = (
            select(B2BTransaction, B2BPartner.name, B2BPartner.location)
            .outerjoin(B2BPartner, B2BTransaction.partner_id == B2BPartner.id)
            .order_by(B2BTransaction.created_at.desc(), B2BTransaction.id.desc())
        )
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"fetch b2b transactions: {exc}") from exc
        out = []
        for trans, name, location in rows:
            record = _row_dict(trans)
            record["partner_name"] = name
            record["partner_location"] = location
            out.append(record)
        return out

    def create_b2b_transaction(self, fields: Mapping[str, Any]) -> RecordId:
        trans = B2BTransaction(**_model_fields(B2BTransaction, fields, "b2b transaction"))
        with self._write("create b2b transaction"):
            self.session.add(trans)
            self.session.flush()
        return trans.id

    def update_b2b_payment_status(self, transaction_id: RecordId, status: str) -> None:
        with self._write(f"update b2b transaction {transaction_id}"):
            trans = self.session.get(B2BTransaction, transaction_id)
            if trans is None:
                raise StoreError(f"b2b transaction {transaction_id} not found")
            trans.payment_status = status

    def create_expense(self, fields: Mapping[str, Any]) -> RecordId:
        expense = Expense(**_model_fields(Expense, fields, "expense"))
        with self._write("create expense"):
            self.session.add(expense)
            self.session.flush()
        return expense.id

    def fetch_expenses(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
        stmt = select(Expense).order_by(Expense.expense_date.desc(), Expense.id.desc())
        if start is not None:
            stmt = stmt.where(Expense.expense_date >= start)
        if end is not None:
            stmt = stmt.where(Expense.expense_date <= end)
        try:
            expenses = self.session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"fetch expenses: {exc}") from exc
        return [_row_dict(e) for e in expenses]


__all__ = ["SqlStore"]
