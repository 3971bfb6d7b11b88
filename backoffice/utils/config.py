"""
Configuration loader for the back-office package.

Reads `docs/protocol/CONFIG.yaml`, normalises environment variables (loaded
from `.env` / `.env.local` first), and exposes typed accessors for downstream
modules (database session factory, store selection, import column mapping).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

import os

import yaml
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = ROOT_DIR / "docs/protocol/CONFIG.yaml"


def load_env() -> None:
    # .env.local overrides .env
    load_dotenv(ROOT_DIR / ".env")
    load_dotenv(ROOT_DIR / ".env.local", override=True)


def _expand_env(value: Any) -> Any:
    """Recursively expand environment variables inside CONFIG values."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand_env(val) for key, val in value.items()}
    return value


@dataclass(frozen=True)
class AppSettings:
    currency: str = "EUR"
    timezone: str = "Europe/Lisbon"


@dataclass(frozen=True)
class DBSettings:
    uri: str


@dataclass(frozen=True)
class StoreSettings:
    kind: str = "sql"
    rest_url: str = ""
    rest_key: str = ""
    timeout_s: float = 30.0


@dataclass(frozen=True)
class SalesColumns:
    date: str = "Data"
    client: str = "Nome do Cliente"
    product: str = "Produto"
    unit_price: str = "Preço Unitário"
    quantity: str = "Quantidade"


@dataclass(frozen=True)
class ImportSettings:
    sales: SalesColumns = field(default_factory=SalesColumns)
    client_location: str = "Importado"


@dataclass(frozen=True)
class PathsSettings:
    name_corrections: str
    sales_file: str
    stock_file: str
    reports_dir: str


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    db: DBSettings
    store: StoreSettings
    imports: ImportSettings
    paths: PathsSettings


def resolve_path(value: Union[str, Path]) -> Path:
    """Resolve a configured path; relative paths are rooted at the repository."""
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = ROOT_DIR / path
    return path


@lru_cache(maxsize=1)
def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load the configuration file and convert it into typed objects.

    Parameters
    ----------
    path: Optional path override; defaults to docs/protocol/CONFIG.yaml.
    """
    load_env()
    cfg_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as fh:
        raw_data: Dict[str, Any] = yaml.safe_load(fh) or {}

    expanded = _expand_env(raw_data)

    app_cfg = AppSettings(**expanded.get("app", {}))
    db_cfg = DBSettings(**expanded["db"])
    store_cfg = StoreSettings(**expanded.get("store", {}))
    imports_raw = dict(expanded.get("imports", {}))
    sales_cols = SalesColumns(**imports_raw.pop("sales", {}))
    imports_cfg = ImportSettings(sales=sales_cols, **imports_raw)
    paths_cfg = PathsSettings(**expanded["paths"])

    return AppConfig(
        app=app_cfg,
        db=db_cfg,
        store=store_cfg,
        imports=imports_cfg,
        paths=paths_cfg,
    )


__all__ = [
    "AppConfig",
    "AppSettings",
    "DBSettings",
    "ImportSettings",
    "PathsSettings",
    "SalesColumns",
    "StoreSettings",
    "load_config",
    "load_env",
    "resolve_path",
]
