#!/usr/bin/env python3
"""
Schema bootstrapper for the SQL store.

Creates the sales, catalog, B2B and expense tables and prints a row count
per table.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict

from sqlalchemy import func, select

from backoffice.db.models import Base
from backoffice.db.session import get_engine, get_session
from backoffice.utils.config import load_config


def _collect_counts(config) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    with get_session(config) as session:
        for table in Base.metadata.sorted_tables:
            result = session.execute(select(func.count()).select_from(table))
            counts[table.name] = result.scalar_one()
    return counts


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create or upgrade the back-office schema")
    parser.add_argument("--config", type=Path, help="Path to CONFIG.yaml")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop and recreate all tables (SQLite only). WARNING: destructive.",
    )
    args = parser.parse_args(argv)

    config = load_config(args.config) if args.config else load_config()
    engine = get_engine(config)
    if args.reset:
        if engine.dialect.name != "sqlite":
            print("--reset is only supported for SQLite databases.", file=sys.stderr)
            return 1
        Base.metadata.drop_all(engine)
        print("Dropped existing tables (SQLite reset).")

    Base.metadata.create_all(engine)

    counts = _collect_counts(config)
    print("Migration complete. Table row counts:")
    for name, count in counts.items():
        print(f"  - {name}: {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
