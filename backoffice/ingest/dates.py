"""
Date normalisation for historical sales exports.

Exports mix ``DD-MM-YYYY``, ``DD/MM/YYYY``, ``YYYY-MM-DD`` and the occasional
``YYYY-DD-MM``. `normalize_date` turns the recognisable ones into ISO
``YYYY-MM-DD`` and hands anything else back untouched.

Heuristics, applied to the three components ``p0-p1-p2`` in order:

- ``p2 > 2000``: day-month-year.
- ``p0 > 2000`` and ``p1 > 12``: year-day-month (middle cannot be a month).
- ``p0 > 2000``: year-month-day.
- otherwise: ambiguous, returned unchanged.

Day/month ranges are not validated; reprocessing old data must not start
rejecting rows that were accepted before.
"""
from __future__ import annotations

import re
from typing import Optional

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _leading_int(text: str) -> Optional[int]:
    match = _LEADING_INT_RE.match(text)
    if not match:
        return None
    return int(match.group(1))


def _iso(year: int, month: int, day: int) -> str:
    return f"{year}-{month:02d}-{day:02d}"


def normalize_date(raw: Optional[str]) -> Optional[str]:
    """Return ``raw`` as ISO ``YYYY-MM-DD`` when it can be disambiguated.

    >>> normalize_date("27-09-2024")
    '2024-09-27'
    >>> normalize_date("2024-27-09")
    '2024-09-27'
    >>> normalize_date("01-02-03")
    '01-02-03'
    """
    if not raw:
        return None

    parts = raw.replace("/", "-").split("-")
    if len(parts) != 3:
        return raw

    p0, p1, p2 = (_leading_int(part) for part in parts)
    if p0 is None or p1 is None or p2 is None:
        return raw

    if p2 > 2000:
        return _iso(p2, p1, p0)
    if p0 > 2000:
        if p1 > 12:
            return _iso(p0, p2, p1)
        return _iso(p0, p1, p2)
    return raw


def is_iso_date(value: Optional[str]) -> bool:
    return bool(value) and re.fullmatch(r"\d{4}-\d{2}-\d{2}", value) is not None


__all__ = ["is_iso_date", "normalize_date"]
