from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import DefaultDict, Iterable

from domain.catalog import AssetId, WalletId
from domain.movements import BalanceLeg, Movement

WalletBalances = DefaultDict[WalletId, Decimal]
AssetBalances = DefaultDict[AssetId, WalletBalances]


class WalletBalanceError(Exception):
    def __init__(
        self,
        *,
        asset_id: AssetId,
        wallet_id: WalletId,
        attempted_quantity: Decimal,
        available_balance: Decimal,
    ) -> None:
        self.asset_id = asset_id
        self.wallet_id = wallet_id
        self.attempted_quantity = attempted_quantity
        self.available_balance = available_balance
        message = (
            f"Insufficient balance for asset={asset_id} wallet={wallet_id} "
            f"attempted={attempted_quantity} available={available_balance}"
        )
        super().__init__(message)


class WalletBalanceTracker:
    """Running per-(asset, wallet) balances that refuse to go below zero."""

    def __init__(self) -> None:
        self._balances: AssetBalances = defaultdict(lambda: defaultdict(lambda: Decimal(0)))

    @classmethod
    def from_movements(cls, movements: Iterable[Movement]) -> WalletBalanceTracker:
        """Seed balances from an already committed ledger, without overdraft checks."""
        tracker = cls()
        for movement in movements:
            for leg in movement.balance_legs():
                tracker._balances[leg.asset_id][leg.wallet_id] += leg.quantity
        return tracker

    def apply_legs(self, legs: Iterable[BalanceLeg]) -> None:
        """Apply every leg or none of them."""
        legs = list(legs)
        for leg in legs:
            if leg.quantity < 0 and not self.has_available(
                asset_id=leg.asset_id, wallet_id=leg.wallet_id, quantity=-leg.quantity
            ):
                raise WalletBalanceError(
                    asset_id=leg.asset_id,
                    wallet_id=leg.wallet_id,
                    attempted_quantity=leg.quantity,
                    available_balance=self.get_balance(asset_id=leg.asset_id, wallet_id=leg.wallet_id),
                )
        for leg in legs:
            self._balances[leg.asset_id][leg.wallet_id] += leg.quantity

    def get_balance(self, *, asset_id: AssetId, wallet_id: WalletId) -> Decimal:
        return self._balances[asset_id][wallet_id]

    def has_available(self, *, asset_id: AssetId, wallet_id: WalletId, quantity: Decimal) -> bool:
        return self._balances[asset_id][wallet_id] >= quantity
