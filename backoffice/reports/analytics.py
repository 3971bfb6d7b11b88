#!/usr/bin/env python3
"""
Sales analytics: revenue, profit, margin, best day and top products for a period.
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from backoffice.store import BackOfficeStore, StoreError, open_store
from backoffice.utils.config import load_config

logger = logging.getLogger(__name__)

PERIODS = ("today", "week", "month", "year")
UNKNOWN_PRODUCT = "Desconhecido"
TOP_N = 10


@dataclass
class SalesSummary:
    since: datetime
    revenue: float = 0.0
    profit: float = 0.0
    sales_count: int = 0
    best_day: Optional[str] = None
    top_products: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def margin_pct(self) -> float:
        if not self.revenue:
            return 0.0
        return self.profit / self.revenue * 100


def local_now(tz_name: str) -> datetime:
    """Wall-clock time in `tz_name`, naive like the stored sale dates."""
    try:
        zone = ZoneInfo(tz_name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone {tz_name!r}") from exc
    return datetime.now(zone).replace(tzinfo=None)


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return midnight
    if period == "week":
        return now - timedelta(days=7)
    if period == "year":
        return midnight.replace(month=1, day=1)
    # month, and anything unrecognised
    return midnight.replace(day=1)


def best_day(sales: pd.DataFrame) -> Optional[str]:
    """Day with the highest revenue; on a tie the later day wins."""
    if sales.empty:
        return None
    days = pd.to_datetime(sales["created_at"], errors="coerce").dt.date
    by_day = sales.groupby(days, sort=True)["total_amount"].sum()
    if by_day.empty:
        return None
    top = by_day.max()
    return str(by_day[by_day == top].index[-1])


def top_products(items: List[Dict[str, Any]], limit: int = TOP_N) -> List[Dict[str, Any]]:
    if not items:
        return []
    df = pd.DataFrame(items)
    df["name"] = df["product_name"].fillna(UNKNOWN_PRODUCT).replace("", UNKNOWN_PRODUCT)
    df["brand"] = df["brand"].fillna("")
    df["revenue"] = df["unit_price"].astype(float) * df["quantity"]
    df["profit"] = df["unit_profit"].astype(float) * df["quantity"]
    grouped = (
        df.groupby(["name", "brand"], sort=False)
        .agg(qty=("quantity", "sum"), revenue=("revenue", "sum"), profit=("profit", "sum"))
        .reset_index()
        .sort_values("qty", ascending=False, kind="stable")
        .head(limit)
    )
    return [
        {
            "name": row.name,
            "brand": row.brand,
            "qty": int(row.qty),
            "revenue": float(row.revenue),
            "profit": float(row.profit),
        }
        for row in grouped.itertuples(index=False)
    ]


def summarize_sales(store: BackOfficeStore, period: str = "month", now: Optional[datetime] = None) -> SalesSummary:
    since = period_start(period, now)
    summary = SalesSummary(since=since)

    records = store.fetch_sales(since)
    if not records:
        return summary

    sales = pd.DataFrame(records)
    summary.revenue = float(sales["total_amount"].astype(float).sum())
    summary.profit = float(sales["total_profit"].astype(float).sum())
    summary.sales_count = len(sales)
    summary.best_day = best_day(sales)
    summary.top_products = top_products(store.fetch_sale_items(sales["id"].tolist()))
    return summary


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Summarise sales for a period.")
    parser.add_argument("--period", choices=PERIODS, default="month")
    parser.add_argument("--config", type=Path, help="Path to CONFIG.yaml")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    config = load_config(args.config) if args.config else load_config()
    currency = config.app.currency

    try:
        with open_store(config) as store:
            summary = summarize_sales(store, args.period, now=local_now(config.app.timezone))
    except (StoreError, ValueError) as exc:
        logger.error("Analytics failed: %s", exc)
        return 1

    print(f"Since {summary.since:%Y-%m-%d %H:%M}")
    print(f"Revenue: {currency} {summary.revenue:,.2f}")
    print(f"Profit:  {currency} {summary.profit:,.2f} (margin {summary.margin_pct:.1f}%)")
    print(f"Sales:   {summary.sales_count}")
    print(f"Best day: {summary.best_day or '-'}")
    if summary.top_products:
        print("Top products:")
        for prod in summary.top_products:
            label = f"{prod['name']} ({prod['brand']})" if prod["brand"] else prod["name"]
            print(f"  {prod['qty']:>5}  {label}  {currency} {prod['revenue']:,.2f}  profit {prod['profit']:,.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
