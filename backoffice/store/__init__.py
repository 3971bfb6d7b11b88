"""
Store selection: the CLIs ask for a store and get whichever backend CONFIG.yaml names.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from backoffice.store.base import BackOfficeStore, ProductRecord, StoreError
from backoffice.utils.config import AppConfig


@contextmanager
def open_store(config: AppConfig) -> Iterator[BackOfficeStore]:
    kind = (config.store.kind or "sql").strip().lower()
    if kind == "rest":
        from backoffice.store.rest import RestStore

        with RestStore.connect(config.store.rest_url, config.store.rest_key, config.store.timeout_s) as store:
            yield store
    elif kind == "sql":
        from backoffice.db.session import get_session
        from backoffice.store.sql import SqlStore

        from sqlalchemy.exc import SQLAlchemyError

        try:
            with get_session(config) as session:
                yield SqlStore(session)
        except SQLAlchemyError as exc:
            # session open or final commit
            raise StoreError(f"database session: {exc}") from exc
    else:
        raise ValueError(f"Unknown store kind {config.store.kind!r} (expected 'sql' or 'rest')")


__all__ = ["BackOfficeStore", "ProductRecord", "StoreError", "open_store"]
