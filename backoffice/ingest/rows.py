"""
Spreadsheet ingestion: sales exports (CSV or XLSX) into `RawSaleRow`s.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union

import pandas as pd

from backoffice.ingest.validation import sales_rule, validate_columns
from backoffice.utils.config import SalesColumns

logger = logging.getLogger(__name__)

_LEADING_FLOAT_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class RawSaleRow:
    date: Optional[str]
    client_name: Optional[str]
    product_name: Optional[str]
    unit_price: float = 0.0
    quantity: int = 1
    line_no: int = 0


def _cell_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return str(value)


def parse_price(value: Any) -> float:
    """Parse a unit price; decimal comma accepted, unparsable -> 0.0."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return 0.0 if pd.isna(value) else float(value)
    text = _cell_text(value)
    if not text:
        return 0.0
    match = _LEADING_FLOAT_RE.match(text.replace(",", ".", 1))
    if not match:
        return 0.0
    return float(match.group(1))


def parse_quantity(value: Any) -> int:
    """Parse a quantity; missing, unparsable or below 1 -> 1."""
    if isinstance(value, float) and not pd.isna(value):
        value = int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value if value >= 1 else 1
    text = _cell_text(value)
    if not text:
        return 1
    match = _LEADING_INT_RE.match(text)
    if not match:
        return 1
    qty = int(match.group(1))
    return qty if qty >= 1 else 1


def read_table(path: Union[str, Path]) -> pd.DataFrame:
    """Load a CSV or XLSX export with every cell kept as text."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {file_path}")
    if file_path.suffix.lower() in {".xlsx", ".xlsm"}:
        df = pd.read_excel(file_path, dtype=str, engine="openpyxl")
    else:
        df = pd.read_csv(file_path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    df.columns = [str(c).strip() for c in df.columns]
    return df


def rows_from_frame(df: pd.DataFrame, columns: SalesColumns) -> List[RawSaleRow]:
    rule = sales_rule(columns.date, columns.client, columns.product, columns.unit_price, columns.quantity)
    missing = validate_columns(rule, df.columns)
    if missing["missing_optional"]:
        logger.warning("sales: column(s) %s absent; quantity defaults to 1", ", ".join(missing["missing_optional"]))

    has_qty = columns.quantity in df.columns
    rows: List[RawSaleRow] = []
    # header is line 1 of the export
    for line_no, record in enumerate(df.to_dict(orient="records"), start=2):
        rows.append(
            RawSaleRow(
                date=_cell_text(record.get(columns.date)),
                client_name=_cell_text(record.get(columns.client)),
                product_name=_cell_text(record.get(columns.product)),
                unit_price=parse_price(record.get(columns.unit_price)),
                quantity=parse_quantity(record.get(columns.quantity)) if has_qty else 1,
                line_no=line_no,
            )
        )
    return rows


def read_sales_rows(path: Union[str, Path], columns: Optional[SalesColumns] = None) -> List[RawSaleRow]:
    df = read_table(path)
    rows = rows_from_frame(df, columns or SalesColumns())
    logger.info("sales: read %d rows from %s", len(rows), Path(path).name)
    return rows


__all__ = ["RawSaleRow", "parse_price", "parse_quantity", "read_sales_rows", "read_table", "rows_from_frame"]
