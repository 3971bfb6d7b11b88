#!/usr/bin/env python3
"""
Expense log: record an expense and total the expenses of a period.
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from backoffice.reports.analytics import PERIODS, local_now, period_start
from backoffice.store import BackOfficeStore, StoreError, open_store
from backoffice.store.base import RecordId
from backoffice.utils.config import load_config

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Operacional"


@dataclass
class ExpenseSummary:
    start: Optional[date]
    end: Optional[date]
    total: float = 0.0
    count: int = 0
    by_category: Dict[str, float] = field(default_factory=dict)


def expense_total(expenses: Iterable[Mapping[str, Any]]) -> float:
    return round(sum(float(e.get("amount") or 0) for e in expenses), 2)


def summarize_expenses(
    store: BackOfficeStore, start: Optional[date] = None, end: Optional[date] = None
) -> ExpenseSummary:
    expenses = store.fetch_expenses(start, end)
    summary = ExpenseSummary(start=start, end=end, total=expense_total(expenses), count=len(expenses))
    for expense in expenses:
        category = expense.get("category") or DEFAULT_CATEGORY
        summary.by_category[category] = round(summary.by_category.get(category, 0.0) + float(expense.get("amount") or 0), 2)
    return summary


def add_expense(
    store: BackOfficeStore,
    description: str,
    amount: float,
    expense_date: Optional[date] = None,
    category: str = DEFAULT_CATEGORY,
) -> RecordId:
    if not description.strip():
        raise ValueError("Expense description is required")
    return store.create_expense(
        {
            "description": description.strip(),
            "category": category or DEFAULT_CATEGORY,
            "amount": float(amount),
            "expense_date": (expense_date or date.today()).isoformat(),
        }
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Total expenses for a period, or log a new one.")
    parser.add_argument("--config", type=Path, help="Path to CONFIG.yaml")
    parser.add_argument("--period", choices=PERIODS, default="month")
    parser.add_argument("--from", dest="start", type=date.fromisoformat, help="First day (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", type=date.fromisoformat, help="Last day (YYYY-MM-DD)")
    parser.add_argument("--add", metavar="DESCRIPTION", help="Log an expense instead of reporting")
    parser.add_argument("--amount", type=float, default=0.0)
    parser.add_argument("--category", default=DEFAULT_CATEGORY)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    config = load_config(args.config) if args.config else load_config()
    currency = config.app.currency

    try:
        today = local_now(config.app.timezone)
        with open_store(config) as store:
            if args.add:
                expense_id = add_expense(store, args.add, args.amount, args.start or today.date(), args.category)
                print(f"Expense {expense_id} logged: {currency} {args.amount:,.2f}")
                return 0
            start = args.start
            if start is None and args.end is None:
                start = period_start(args.period, today).date()
            summary = summarize_expenses(store, start, args.end)
    except (StoreError, ValueError) as exc:
        logger.error("Expense report failed: %s", exc)
        return 1

    print(f"From {summary.start or '-'} to {summary.end or '-'}")
    print(f"Expenses: {summary.count}, total {currency} {summary.total:,.2f}")
    for category, amount in sorted(summary.by_category.items()):
        print(f"  {category}: {currency} {amount:,.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
