"""
Engine and session helpers for the SQL store.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import Session, sessionmaker

from backoffice.utils.config import AppConfig, load_config, resolve_path

_ENGINE: Optional[Engine] = None
_SESSION_FACTORY: Optional[sessionmaker] = None


def resolve_database_url(raw_uri: str) -> URL:
    """
    Normalise the configured database URI.

    Relative SQLite file paths become absolute paths rooted at the repository
    so the CLIs behave the same from any working directory.
    """
    url = make_url(raw_uri)
    if url.get_backend_name() == "sqlite":
        database = url.database
        if database and database not in {":memory:", ""}:
            url = url.set(database=str(resolve_path(database)))
    return url


def get_database_url(config: Optional[AppConfig] = None) -> URL:
    cfg = config or load_config()
    return resolve_database_url(cfg.db.uri)


def get_engine(config: Optional[AppConfig] = None, echo: bool = False) -> Engine:
    """Return a process-wide SQLAlchemy engine, creating it on first use."""
    global _ENGINE
    if _ENGINE is None:
        url = get_database_url(config)
        if url.get_backend_name() == "sqlite" and url.database not in {None, "", ":memory:"}:
            resolve_path(url.database).parent.mkdir(parents=True, exist_ok=True)
        connect_args = {"check_same_thread": False} if url.get_backend_name() == "sqlite" else {}
        _ENGINE = create_engine(url, echo=echo, connect_args=connect_args)
    return _ENGINE


def dispose_engine() -> None:
    """Drop the cached engine and session factory (used when switching configs)."""
    global _ENGINE, _SESSION_FACTORY
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSION_FACTORY = None


def _get_session_factory(config: Optional[AppConfig] = None) -> sessionmaker:
    global _SESSION_FACTORY
    if _SESSION_FACTORY is None:
        _SESSION_FACTORY = sessionmaker(bind=get_engine(config), autoflush=False, expire_on_commit=False)
    return _SESSION_FACTORY


@contextmanager
def get_session(config: Optional[AppConfig] = None) -> Iterator[Session]:
    """
    Context manager yielding a transactional SQLAlchemy session.

    Rolls back on exceptions and ensures the session is closed.
    """
    session = _get_session_factory(config)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["dispose_engine", "get_database_url", "get_engine", "get_session", "resolve_database_url"]
