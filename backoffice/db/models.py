"""
SQLAlchemy ORM models mirroring the hosted backend's tables.

Column names follow the hosted schema (`buy_price`, `total_amount`, ...) so the
SQL and REST stores hand identical records to the pipeline.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def utcnow() -> datetime:
    """Return a naive UTC datetime (sale dates are stored without offset)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def Money(precision: int = 12) -> Numeric:
    return Numeric(precision, 2, asdecimal=False)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (Index("ix_products_name", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(80))
    buy_price: Mapped[Optional[float]] = mapped_column(Money())
    sell_price: Mapped[Optional[float]] = mapped_column(Money())
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (Index("ix_clients_name", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(120))

    sales: Mapped[list["Sale"]] = relationship(back_populates="client")


class Sale(Base):
    __tablename__ = "sales"
    __table_args__ = (Index("ix_sales_created_at", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"))
    total_amount: Mapped[float] = mapped_column(Money(14), nullable=False, default=0, server_default="0")
    total_profit: Mapped[float] = mapped_column(Money(14), nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    client: Mapped[Optional["Client"]] = relationship(back_populates="sales")
    items: Mapped[list["SaleItem"]] = relationship(back_populates="sale")


class SaleItem(Base):
    __tablename__ = "sale_items"
    __table_args__ = (Index("ix_sale_items_sale_id", "sale_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Money(), nullable=False)
    unit_profit: Mapped[float] = mapped_column(Money(), nullable=False, default=0, server_default="0")

    sale: Mapped["Sale"] = relationship(back_populates="items")
    product: Mapped[Optional["Product"]] = relationship()


class B2BPartner(Base):
    """Shop holding stock on consignment; commission is per unit sold."""

    __tablename__ = "b2b_partners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(120))
    contact_person: Mapped[Optional[str]] = mapped_column(String(120))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    default_commission: Mapped[float] = mapped_column(Money(), nullable=False, default=0, server_default="0")

    transactions: Mapped[list["B2BTransaction"]] = relationship(back_populates="partner")


class B2BTransaction(Base):
    __tablename__ = "b2b_transactions"
    __table_args__ = (Index("ix_b2b_transactions_partner_id", "partner_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    partner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("b2b_partners.id", ondelete="CASCADE"))
    last_delivery_date: Mapped[Optional[date]] = mapped_column(Date)
    sku: Mapped[str] = mapped_column(String(120), nullable=False, default="", server_default="")
    qty_delivered: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    sales_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_sales_value: Mapped[float] = mapped_column(Money(14), nullable=False, default=0, server_default="0")
    commission_rate: Mapped[float] = mapped_column(Money(), nullable=False, default=0, server_default="0")
    commission_total: Mapped[float] = mapped_column(Money(14), nullable=False, default=0, server_default="0")
    amount_receivable: Mapped[float] = mapped_column(Money(14), nullable=False, default=0, server_default="0")
    returns_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    payment_deadline: Mapped[Optional[date]] = mapped_column(Date)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pendente", server_default="Pendente")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    partner: Mapped[Optional["B2BPartner"]] = relationship(back_populates="transactions")


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (Index("ix_expenses_expense_date", "expense_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(80), nullable=False, default="Operacional", server_default="Operacional")
    amount: Mapped[float] = mapped_column(Money(), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
