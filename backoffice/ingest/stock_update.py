#!/usr/bin/env python3
"""
Stock and shelf-price refresh from a stock spreadsheet.

Each row names a product (matched case-insensitively against the catalog) and
carries its current stock and selling price. Purchase prices are never
touched.
"""
from __future__ import annotations

import argparse
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from backoffice.ingest.rows import parse_price, read_table
from backoffice.store import BackOfficeStore, StoreError, open_store
from backoffice.utils.config import load_config, resolve_path

logger = logging.getLogger(__name__)

NAME_HEADERS = ["produto", "name", "product", "nome"]
PRICE_HEADERS = ["preço", "preco", "price", "sell_price"]
STOCK_HEADERS = ["stock", "quantidade", "qty"]

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class StockUpdateReport:
    updated: int = 0
    not_found: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


def _normalize_header(name: str) -> str:
    return re.sub(r"\s+", " ", str(name).strip().lower())


def _find_column(columns: Mapping[str, str], candidates: Iterable[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate in columns:
            return columns[candidate]
    return None


def parse_stock(value) -> int:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return 0
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else 0


def apply_stock_updates(df: pd.DataFrame, store: BackOfficeStore) -> StockUpdateReport:
    column_lookup = {_normalize_header(col): col for col in df.columns}
    name_col = _find_column(column_lookup, NAME_HEADERS)
    price_col = _find_column(column_lookup, PRICE_HEADERS)
    stock_col = _find_column(column_lookup, STOCK_HEADERS)
    if name_col is None:
        raise ValueError(f"Stock sheet has no product name column (expected one of: {', '.join(NAME_HEADERS)})")
    if price_col is None:
        logger.warning("stock: no price column; selling prices left unchanged")
    if stock_col is None:
        logger.warning("stock: no stock column; stock levels left unchanged")

    report = StockUpdateReport()
    for record in df.to_dict(orient="records"):
        raw_name = record.get(name_col)
        name = "" if raw_name is None or (isinstance(raw_name, float) and pd.isna(raw_name)) else str(raw_name).strip()
        if not name:
            continue

        fields = {}
        if stock_col is not None:
            fields["stock"] = parse_stock(record.get(stock_col))
        if price_col is not None:
            fields["sell_price"] = parse_price(record.get(price_col))
        if not fields:
            continue

        try:
            matches = store.find_products_by_name(name)
        except StoreError as exc:
            logger.error("Lookup failed for %s: %s", name, exc)
            report.errors[name] = str(exc)
            continue
        if not matches:
            report.not_found.append(name)
            continue
        if len(matches) > 1:
            logger.debug("%d products named %r; updating id %s", len(matches), name, matches[0].id)

        try:
            store.update_product(matches[0].id, **fields)
        except StoreError as exc:
            logger.error("Update failed for %s: %s", name, exc)
            report.errors[name] = str(exc)
            continue
        report.updated += 1

    return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Update product stock and selling price from a spreadsheet.")
    parser.add_argument("file", nargs="?", type=Path, help="Stock sheet (defaults to paths.stock_file)")
    parser.add_argument("--config", type=Path, help="Path to CONFIG.yaml")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    config = load_config(args.config) if args.config else load_config()
    path = args.file or resolve_path(config.paths.stock_file)

    try:
        df = read_table(path)
        with open_store(config) as store:
            report = apply_stock_updates(df, store)
    except (FileNotFoundError, StoreError, ValueError) as exc:
        logger.error("Stock update failed: %s", exc)
        return 1

    print(f"Products updated: {report.updated}")
    print(f"Products not found: {len(report.not_found)}")
    if report.not_found:
        print("These names did not match any product:")
        for name in report.not_found:
            print(f"- {name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
