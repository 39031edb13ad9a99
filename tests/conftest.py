from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base
from db.repositories import CatalogRepository, MovementRepository
from domain.catalog import CatalogSnapshot
from tests.constants import CATALOG
from tests.helpers.time_utils import DEFAULT_TIME_GEN

engine: Engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _reset_default_time_gen() -> None:
    DEFAULT_TIME_GEN.reset()


@pytest.fixture(scope="function")
def catalog_repository(test_session: Session) -> CatalogRepository:
    return CatalogRepository(test_session)


@pytest.fixture(scope="function")
def movement_repository(test_session: Session) -> MovementRepository:
    return MovementRepository(test_session)


@pytest.fixture(scope="function")
def stored_catalog(catalog_repository: CatalogRepository) -> CatalogSnapshot:
    for asset in CATALOG.assets:
        catalog_repository.add_asset(asset)
    for wallet in CATALOG.wallets:
        catalog_repository.add_wallet(wallet)
    for fiat in CATALOG.fiats:
        catalog_repository.add_fiat(fiat)
    catalog_repository.commit()
    return catalog_repository.snapshot()
