"""
Batch jobs over spreadsheet exports: sales import and stock refresh.
"""

from .dates import normalize_date
from .names import canonicalize, load_name_corrections
from .rows import RawSaleRow, read_sales_rows
from .sales_import import ImportReport, aggregate_rows, run_import
from .stock_update import apply_stock_updates

__all__ = [
    "ImportReport",
    "RawSaleRow",
    "aggregate_rows",
    "apply_stock_updates",
    "canonicalize",
    "load_name_corrections",
    "normalize_date",
    "read_sales_rows",
    "run_import",
]
