import logging
import os

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base

logger = logging.getLogger(__name__)


def init_db(echo: bool = False, *, db_file: str = "crypto_tracker.db", reset: bool = False) -> Session:
    if reset and os.path.exists(db_file):
        logger.info("Removing existing database %s", db_file)
        os.remove(db_file)

    engine: Engine = create_engine(f"sqlite:///{db_file}", echo=echo)

    Base.metadata.create_all(engine)
    return sessionmaker(engine)()
