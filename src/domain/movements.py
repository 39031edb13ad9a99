from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Iterable, Iterator, NewType, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from domain.catalog import AssetId, FiatId, WalletId

MovementId = NewType("MovementId", UUID)


class MovementKind(StrEnum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    SWAP = "SWAP"


@dataclass(frozen=True)
class BalanceLeg:
    """Effect of a movement on one (asset, wallet) balance.

    Quantity sign convention:
    - Positive quantity indicates an inflow into the wallet.
    - Negative quantity indicates an outflow from the wallet.
    """

    asset_id: AssetId
    wallet_id: WalletId
    quantity: Decimal


class AbstractMovement(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: MovementId = MovementId(Field(default_factory=uuid4))
    date: datetime

    @property
    def kind(self) -> MovementKind:
        raise NotImplementedError

    def balance_legs(self) -> list[BalanceLeg]:
        raise NotImplementedError

    def wallet_ids(self) -> set[WalletId]:
        return {leg.wallet_id for leg in self.balance_legs()}


class _FiatValuedMovement(AbstractMovement):
    wallet_id: WalletId
    asset_id: AssetId
    crypto_quantity: Decimal
    price_usd: Decimal
    total_value_usd: Decimal
    fiat_quantity: Decimal | None = None
    fiat_id: FiatId | None = None

    @model_validator(mode="after")
    def _validate_amounts(self) -> _FiatValuedMovement:
        if self.crypto_quantity <= 0:
            raise ValueError("crypto_quantity must be > 0")
        if self.price_usd < 0:
            raise ValueError("price_usd must be >= 0")
        if self.total_value_usd < 0:
            raise ValueError("total_value_usd must be >= 0")
        if (self.fiat_quantity is None) != (self.fiat_id is None):
            raise ValueError("fiat_quantity and fiat_id must be provided together")
        if self.fiat_quantity is not None and self.fiat_quantity < 0:
            raise ValueError("fiat_quantity must be >= 0")
        return self

    @property
    def uses_fiat(self) -> bool:
        return self.fiat_id is not None

    @property
    def fiat_price(self) -> Decimal | None:
        """Fiat paid or received per unit of crypto."""
        if self.fiat_quantity is None:
            return None
        return self.fiat_quantity / self.crypto_quantity


class Deposit(_FiatValuedMovement):
    """Crypto entering a wallet: purchase, airdrop, reward."""

    @property
    def kind(self) -> MovementKind:
        return MovementKind.DEPOSIT

    def balance_legs(self) -> list[BalanceLeg]:
        return [BalanceLeg(asset_id=self.asset_id, wallet_id=self.wallet_id, quantity=self.crypto_quantity)]


class Withdrawal(_FiatValuedMovement):
    """Crypto leaving a wallet: sale, spend."""

    @property
    def kind(self) -> MovementKind:
        return MovementKind.WITHDRAWAL

    def balance_legs(self) -> list[BalanceLeg]:
        return [BalanceLeg(asset_id=self.asset_id, wallet_id=self.wallet_id, quantity=-self.crypto_quantity)]


class Transfer(AbstractMovement):
    source_wallet_id: WalletId
    destination_wallet_id: WalletId
    asset_id: AssetId
    quantity_sent: Decimal
    quantity_received: Decimal

    @model_validator(mode="after")
    def _validate_fields(self) -> Transfer:
        if self.source_wallet_id == self.destination_wallet_id:
            raise ValueError("source and destination wallets must differ")
        if self.quantity_sent <= 0:
            raise ValueError("quantity_sent must be > 0")
        if self.quantity_received <= 0:
            raise ValueError("quantity_received must be > 0")
        if self.quantity_received > self.quantity_sent:
            raise ValueError("quantity_received must be <= quantity_sent")
        return self

    @property
    def kind(self) -> MovementKind:
        return MovementKind.TRANSFER

    @property
    def fee_quantity(self) -> Decimal:
        return self.quantity_sent - self.quantity_received

    def balance_legs(self) -> list[BalanceLeg]:
        return [
            BalanceLeg(asset_id=self.asset_id, wallet_id=self.source_wallet_id, quantity=-self.quantity_sent),
            BalanceLeg(asset_id=self.asset_id, wallet_id=self.destination_wallet_id, quantity=self.quantity_received),
        ]


class Swap(AbstractMovement):
    wallet_id: WalletId
    source_asset_id: AssetId
    destination_asset_id: AssetId
    quantity_source: Decimal
    quantity_destination: Decimal
    price_usd_source: Decimal
    price_usd_destination: Decimal

    @model_validator(mode="after")
    def _validate_fields(self) -> Swap:
        if self.source_asset_id == self.destination_asset_id:
            raise ValueError("source and destination assets must differ")
        if self.quantity_source <= 0:
            raise ValueError("quantity_source must be > 0")
        if self.quantity_destination <= 0:
            raise ValueError("quantity_destination must be > 0")
        if self.price_usd_source < 0 or self.price_usd_destination < 0:
            raise ValueError("swap prices must be >= 0")
        return self

    @property
    def kind(self) -> MovementKind:
        return MovementKind.SWAP

    @property
    def value_usd_source(self) -> Decimal:
        return self.quantity_source * self.price_usd_source

    @property
    def value_usd_destination(self) -> Decimal:
        return self.quantity_destination * self.price_usd_destination

    def balance_legs(self) -> list[BalanceLeg]:
        return [
            BalanceLeg(asset_id=self.source_asset_id, wallet_id=self.wallet_id, quantity=-self.quantity_source),
            BalanceLeg(asset_id=self.destination_asset_id, wallet_id=self.wallet_id, quantity=self.quantity_destination),
        ]


Movement = Union[Deposit, Withdrawal, Transfer, Swap]

MOVEMENT_TYPES: dict[MovementKind, type[AbstractMovement]] = {
    MovementKind.DEPOSIT: Deposit,
    MovementKind.WITHDRAWAL: Withdrawal,
    MovementKind.TRANSFER: Transfer,
    MovementKind.SWAP: Swap,
}


class Ledger:
    """Ordered set of movements with a wallet -> movement index.

    Wallets do not hold references to their movements; the index is maintained
    alongside the movement list instead.
    """

    def __init__(self, movements: Iterable[Movement] = ()) -> None:
        self._movements: list[Movement] = []
        self._by_id: dict[MovementId, Movement] = {}
        self._wallet_index: dict[WalletId, list[MovementId]] = defaultdict(list)
        self.extend(movements)

    def add(self, movement: Movement) -> None:
        if movement.id in self._by_id:
            raise ValueError(f"Movement {movement.id} is already in the ledger")
        self._movements.append(movement)
        self._by_id[movement.id] = movement
        for wallet_id in sorted(movement.wallet_ids(), key=str):
            self._wallet_index[wallet_id].append(movement.id)

    def extend(self, movements: Iterable[Movement]) -> None:
        for movement in movements:
            self.add(movement)

    def copy(self) -> Ledger:
        return Ledger(self._movements)

    def get(self, movement_id: MovementId) -> Movement | None:
        return self._by_id.get(movement_id)

    def movements_for_wallet(self, wallet_id: WalletId) -> list[Movement]:
        return [self._by_id[movement_id] for movement_id in self._wallet_index.get(wallet_id, [])]

    def movement_ids_for_wallet(self, wallet_id: WalletId) -> list[MovementId]:
        return list(self._wallet_index.get(wallet_id, []))

    def of_kind(self, kind: MovementKind) -> list[Movement]:
        return [movement for movement in self._movements if movement.kind == kind]

    def chronological(self) -> list[Movement]:
        # sorted() is stable, so same-day movements keep their ledger order.
        return sorted(self._movements, key=lambda movement: movement.date)

    def __iter__(self) -> Iterator[Movement]:
        return iter(self._movements)

    def __len__(self) -> int:
        return len(self._movements)
