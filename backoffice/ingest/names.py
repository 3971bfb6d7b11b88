"""Legacy product-name corrections (the static rename table)."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import yaml

from backoffice.utils.config import AppConfig, load_config, resolve_path

logger = logging.getLogger(__name__)


def load_name_corrections(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read the rename table from YAML.

    The file holds a ``corrections`` mapping of legacy name -> catalog name.
    A catalog name that is also a legacy key is rejected: the table would no
    longer be idempotent and the result would depend on how often it was
    applied.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Name corrections file not found: {file_path}")

    with file_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        table = None
    elif "corrections" in raw:
        table = raw["corrections"]
    elif "version" in raw:
        raise ValueError(f"{file_path}: versioned table has no 'corrections' mapping")
    else:
        # unversioned file: the whole mapping is the table
        table = raw
    if not isinstance(table, dict):
        raise ValueError(f"{file_path}: expected a mapping of legacy name -> catalog name")

    corrections: Dict[str, str] = {}
    for legacy, canonical in table.items():
        if not isinstance(legacy, str) or not isinstance(canonical, str):
            raise ValueError(f"{file_path}: names must be strings ({legacy!r} -> {canonical!r})")
        corrections[legacy] = canonical

    chained = sorted(v for v in set(corrections.values()) if v in corrections)
    if chained:
        raise ValueError(f"{file_path}: catalog names also listed as legacy names: {', '.join(chained)}")

    logger.debug("Loaded %d name corrections (version %s)", len(corrections), raw.get("version", "-"))
    return corrections


def load_configured_corrections(config: Optional[AppConfig] = None) -> Dict[str, str]:
    cfg = config or load_config()
    return load_name_corrections(resolve_path(cfg.paths.name_corrections))


def canonicalize(raw_name: str, corrections: Mapping[str, str]) -> str:
    """Map a legacy product name to its catalog name; unknown names pass through."""
    return corrections.get(raw_name, raw_name)


def catalog_key(name: str) -> str:
    return name.strip().lower()


__all__ = ["canonicalize", "catalog_key", "load_configured_corrections", "load_name_corrections"]
