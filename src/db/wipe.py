from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import models
from db.repositories import StoreError

logger = logging.getLogger(__name__)

# Movements reference catalogs, price artifacts reference assets; children go first.
WIPE_ORDER = (
    ("deposits", models.DepositOrm),
    ("withdrawals", models.WithdrawalOrm),
    ("transfers", models.TransferOrm),
    ("swaps", models.SwapOrm),
    ("historical_prices", models.HistoricalPriceOrm),
    ("price_sync_configs", models.PriceSyncConfigOrm),
    ("wallets", models.WalletOrm),
    ("assets", models.AssetOrm),
    ("fiat_currencies", models.FiatCurrencyOrm),
)


def wipe_all(session: Session) -> dict[str, int]:
    """Delete every movement, price artifact and catalog entry in a single commit."""
    deleted: dict[str, int] = {}
    try:
        for table, orm_class in WIPE_ORDER:
            result = session.execute(delete(orm_class))
            deleted[table] = result.rowcount
        session.commit()
    except SQLAlchemyError as err:
        session.rollback()
        raise StoreError(f"Wipe failed, nothing was deleted: {err}") from err

    logger.info("Wiped store: %s", ", ".join(f"{table}={count}" for table, count in deleted.items()))
    return deleted
