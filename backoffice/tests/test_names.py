from __future__ import annotations

import pytest

from backoffice.ingest.names import canonicalize, catalog_key, load_name_corrections
from backoffice.utils.config import ROOT_DIR

SHIPPED_TABLE = ROOT_DIR / "docs/protocol/name_corrections.yaml"


@pytest.fixture(scope="module")
def corrections():
    return load_name_corrections(SHIPPED_TABLE)


def test_legacy_name_is_mapped(corrections):
    assert canonicalize("CUBA Black Cherry Strong", corrections) == "CUBA Cherry Strong"
    assert canonicalize("Velo Peppermint", corrections) == "VELO Mighty Peppermint"


def test_lookup_is_case_sensitive(corrections):
    assert canonicalize("cuba black cherry strong", corrections) == "cuba black cherry strong"


def test_unknown_name_passes_through(corrections):
    assert canonicalize("Brand New Flavour", corrections) == "Brand New Flavour"


def test_canonicalize_is_idempotent(corrections):
    samples = list(corrections) + list(corrections.values()) + ["Something Else"]
    for name in samples:
        once = canonicalize(name, corrections)
        assert canonicalize(once, corrections) == once


def test_chained_table_is_rejected(tmp_path):
    path = tmp_path / "names.yaml"
    path.write_text('corrections:\n  "A": "B"\n  "B": "C"\n', encoding="utf-8")
    with pytest.raises(ValueError, match="B"):
        load_name_corrections(path)


def test_plain_mapping_is_accepted(tmp_path):
    path = tmp_path / "names.yaml"
    path.write_text('"Old": "New"\n', encoding="utf-8")
    assert load_name_corrections(path) == {"Old": "New"}


def test_versioned_file_without_corrections_is_rejected(tmp_path):
    path = tmp_path / "names.yaml"
    path.write_text('version: 4\ncorection:\n  "Old": "New"\n', encoding="utf-8")
    with pytest.raises(ValueError, match="no 'corrections' mapping"):
        load_name_corrections(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_name_corrections(tmp_path / "nope.yaml")


def test_catalog_key():
    assert catalog_key("  CUBA Cherry Strong ") == "cuba cherry strong"
