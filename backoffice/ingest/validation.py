from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel


class SchemaRule(BaseModel):
    name: str
    required_columns: List[str]
    optional_columns: List[str] = []
    fatal_missing: Optional[List[str]] = None


def sales_rule(date: str, client: str, product: str, unit_price: str, quantity: str) -> SchemaRule:
    return SchemaRule(
        name="sales",
        required_columns=[date, client, product, unit_price],
        optional_columns=[quantity],
    )


def validate_columns(rule: SchemaRule, columns: Iterable[str]) -> Dict[str, List[str]]:
    """Check spreadsheet headers against a rule.

    Returns ``{"missing_required": [...], "missing_optional": [...]}`` and raises
    ValueError when any fatal column is absent.
    """
    present = {str(c).strip() for c in columns}
    missing_required = [c for c in rule.required_columns if c not in present]
    missing_optional = [c for c in rule.optional_columns if c not in present]

    fatal_set = set(rule.fatal_missing or rule.required_columns)
    missing_fatal = [c for c in missing_required if c in fatal_set]
    if missing_fatal:
        raise ValueError(f"Validation failed for {rule.name}: missing columns: {', '.join(missing_fatal)}")

    return {"missing_required": missing_required, "missing_optional": missing_optional}
