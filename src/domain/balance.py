from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from domain.catalog import AssetId, WalletId
from domain.movements import Movement

logger = logging.getLogger(__name__)


def available_quantity(
    movements: Iterable[Movement],
    *,
    asset_id: AssetId,
    wallet_id: WalletId,
    as_of: datetime | None = None,
) -> Decimal:
    """Net quantity of ``asset_id`` held in ``wallet_id``.

    Sums deposits, transfer-ins and swap-ins minus withdrawals, transfer-outs
    and swap-outs dated on or before ``as_of`` (the whole ledger when omitted).
    A negative result means the ledger is already inconsistent; it is returned
    as is and reported as a warning.
    """
    total = Decimal(0)
    for movement in movements:
        if as_of is not None and movement.date > as_of:
            continue
        for leg in movement.balance_legs():
            if leg.asset_id == asset_id and leg.wallet_id == wallet_id:
                total += leg.quantity

    if total < 0:
        logger.warning(
            "Negative available balance asset=%s wallet=%s balance=%s as_of=%s",
            asset_id,
            wallet_id,
            total,
            as_of.isoformat() if as_of else "end of ledger",
        )
    return total


def wallet_balances(
    movements: Iterable[Movement],
    *,
    wallet_id: WalletId,
    as_of: datetime | None = None,
) -> dict[AssetId, Decimal]:
    """Balance of every asset that ever touched ``wallet_id``."""
    balances: dict[AssetId, Decimal] = defaultdict(lambda: Decimal(0))
    for movement in movements:
        if as_of is not None and movement.date > as_of:
            continue
        for leg in movement.balance_legs():
            if leg.wallet_id == wallet_id:
                balances[leg.asset_id] += leg.quantity
    return dict(balances)
