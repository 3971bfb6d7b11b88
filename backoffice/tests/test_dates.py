from __future__ import annotations

import pytest

from backoffice.ingest.dates import is_iso_date, normalize_date


def test_day_month_year():
    assert normalize_date("27-09-2024") == "2024-09-27"


def test_year_day_month_is_swapped():
    assert normalize_date("2024-27-09") == "2024-09-27"


def test_iso_passes_through():
    assert normalize_date("2024-09-27") == "2024-09-27"


def test_slash_separator():
    assert normalize_date("13/01/2025") == "2025-01-13"


def test_single_digit_parts_are_padded():
    assert normalize_date("3/1/2025") == "2025-01-03"
    assert normalize_date("2025-1-3") == "2025-01-03"


@pytest.mark.parametrize("raw", ["01-02-03", "2024/09", "27.09.2024", "abc-def-ghi", "2024-09-27-01"])
def test_unresolvable_values_are_returned_unchanged(raw):
    assert normalize_date(raw) == raw


def test_empty_is_none():
    assert normalize_date("") is None
    assert normalize_date(None) is None


def test_day_of_month_not_validated():
    assert normalize_date("31-02-2024") == "2024-02-31"


def test_trailing_time_is_ignored():
    assert normalize_date("2024-09-27 10:15") == "2024-09-27"


def test_is_iso_date():
    assert is_iso_date("2024-09-27")
    assert not is_iso_date("01-02-03")
    assert not is_iso_date(None)
