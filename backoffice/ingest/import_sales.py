#!/usr/bin/env python3
"""
CLI to import a historical sales export into the back-office store.
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd

from backoffice.ingest.names import load_configured_corrections
from backoffice.ingest.rows import read_sales_rows
from backoffice.ingest.sales_import import ImportReport, run_import
from backoffice.store import StoreError, open_store
from backoffice.utils.config import load_config, resolve_path

logger = logging.getLogger(__name__)


def write_unrecognized_report(report: ImportReport, reports_dir: Path, run_date: Optional[str] = None) -> Optional[Path]:
    if not report.unrecognized_products:
        return None
    reports_dir.mkdir(parents=True, exist_ok=True)
    path = reports_dir / f"unrecognized_products_{run_date or date.today().isoformat()}.csv"
    out = pd.DataFrame(
        sorted(report.unrecognized_products.items(), key=lambda kv: (-kv[1], kv[0])),
        columns=["product_name", "rows"],
    )
    out.to_csv(path, index=False)
    return path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import a sales export (CSV/XLSX) as sales and sale lines.")
    parser.add_argument("file", nargs="?", type=Path, help="Sales export (defaults to paths.sales_file)")
    parser.add_argument("--config", type=Path, help="Path to CONFIG.yaml (defaults to docs/protocol/CONFIG.yaml)")
    parser.add_argument("--dry-run", action="store_true", help="Aggregate and report without writing anything")
    parser.add_argument("--report-dir", type=Path, help="Where to write the unrecognized-products CSV")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    config = load_config(args.config) if args.config else load_config()

    sales_path = args.file or resolve_path(config.paths.sales_file)
    try:
        corrections = load_configured_corrections(config)
        rows = read_sales_rows(sales_path, config.imports.sales)
    except (FileNotFoundError, ValueError) as exc:
        logger.error(str(exc))
        return 1

    try:
        with open_store(config) as store:
            report = run_import(
                rows,
                store,
                corrections,
                client_location=config.imports.client_location,
                dry_run=args.dry_run,
            )
    except (StoreError, ValueError) as exc:
        logger.error("Import aborted: %s", exc)
        return 1

    report.log_summary()
    reports_dir = args.report_dir or resolve_path(config.paths.reports_dir)
    written = write_unrecognized_report(report, reports_dir)
    if written:
        logger.info("Unrecognized products written to %s", written)

    mode = " (dry run)" if args.dry_run else ""
    print(f"Sales imported{mode}: {report.imported_sales} of {report.total_sales}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
