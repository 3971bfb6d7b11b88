from __future__ import annotations

from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.db.models import Base, Product
from backoffice.store.sql import SqlStore


@pytest.fixture
def session() -> Iterator[Session]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as sess:
        yield sess
    engine.dispose()


@pytest.fixture
def store(session: Session) -> SqlStore:
    return SqlStore(session)


@pytest.fixture
def catalog_products(session: Session) -> dict:
    products = {
        "cherry": Product(name="CUBA Cherry Strong", brand="CUBA", buy_price=4.00, sell_price=6.00, stock=10),
        "velo": Product(name="VELO Mighty Peppermint", brand="VELO", buy_price=3.00, sell_price=5.00, stock=4),
        "nocost": Product(name="Greatest Cold Dry 16", brand="Greatest", buy_price=None, sell_price=4.50, stock=0),
    }
    session.add_all(products.values())
    session.commit()
    return products
