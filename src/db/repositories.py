from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import models
from domain.catalog import Asset, AssetId, CatalogSnapshot, FiatCurrency, FiatId, Wallet, WalletId
from domain.movements import Deposit, Movement, MovementId, MovementKind, Swap, Transfer, Withdrawal
from domain.price_history import HistoricalPrice, PriceSyncConfig


class StoreError(Exception):
    """The database rejected a write; the session must be rolled back."""


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _commit(session: Session) -> None:
    try:
        session.commit()
    except SQLAlchemyError as err:
        raise StoreError(f"Commit failed: {err}") from err


_MOVEMENT_ORMS: dict[MovementKind, Any] = {
    MovementKind.DEPOSIT: models.DepositOrm,
    MovementKind.WITHDRAWAL: models.WithdrawalOrm,
    MovementKind.TRANSFER: models.TransferOrm,
    MovementKind.SWAP: models.SwapOrm,
}


class MovementRepository:
    """Stages movements in the session; nothing is durable until ``commit``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert(self, movement: Movement) -> None:
        self._session.add(self._to_orm(movement))

    def delete(self, movement: Movement) -> None:
        orm_movement = self._session.get(_MOVEMENT_ORMS[movement.kind], movement.id)
        if orm_movement is not None:
            self._session.delete(orm_movement)

    def fetch_all(self, kind: MovementKind, sorted_by: str = "date") -> list[Movement]:
        orm_class = _MOVEMENT_ORMS[kind]
        column = getattr(orm_class, sorted_by, None)
        if column is None:
            raise ValueError(f"Cannot sort {kind.value.lower()} movements by {sorted_by!r}")
        orm_movements = self._session.query(orm_class).order_by(column.asc()).all()
        return [self._to_domain(kind, orm_movement) for orm_movement in orm_movements]

    def get(self, kind: MovementKind, movement_id: MovementId) -> Movement | None:
        orm_movement = self._session.get(_MOVEMENT_ORMS[kind], movement_id)
        if orm_movement is None:
            return None
        return self._to_domain(kind, orm_movement)

    def count(self, kind: MovementKind) -> int:
        return self._session.query(_MOVEMENT_ORMS[kind]).count()

    def commit(self) -> None:
        _commit(self._session)

    def rollback(self) -> None:
        self._session.rollback()

    @staticmethod
    def _to_orm(movement: Movement) -> Any:
        if isinstance(movement, (Deposit, Withdrawal)):
            return _MOVEMENT_ORMS[movement.kind](
                id=movement.id,
                date=movement.date,
                wallet_id=movement.wallet_id,
                asset_id=movement.asset_id,
                crypto_quantity=movement.crypto_quantity,
                price_usd=movement.price_usd,
                total_value_usd=movement.total_value_usd,
                fiat_quantity=movement.fiat_quantity,
                fiat_id=movement.fiat_id,
            )
        if isinstance(movement, Transfer):
            return models.TransferOrm(
                id=movement.id,
                date=movement.date,
                source_wallet_id=movement.source_wallet_id,
                destination_wallet_id=movement.destination_wallet_id,
                asset_id=movement.asset_id,
                quantity_sent=movement.quantity_sent,
                quantity_received=movement.quantity_received,
            )
        if isinstance(movement, Swap):
            return models.SwapOrm(
                id=movement.id,
                date=movement.date,
                wallet_id=movement.wallet_id,
                source_asset_id=movement.source_asset_id,
                destination_asset_id=movement.destination_asset_id,
                quantity_source=movement.quantity_source,
                quantity_destination=movement.quantity_destination,
                price_usd_source=movement.price_usd_source,
                price_usd_destination=movement.price_usd_destination,
            )
        raise TypeError(f"Unsupported movement type: {type(movement).__name__}")

    @staticmethod
    def _to_domain(kind: MovementKind, orm_movement: Any) -> Movement:
        if kind in (MovementKind.DEPOSIT, MovementKind.WITHDRAWAL):
            movement_type = Deposit if kind == MovementKind.DEPOSIT else Withdrawal
            return movement_type(
                id=orm_movement.id,
                date=_as_utc(orm_movement.date),
                wallet_id=orm_movement.wallet_id,
                asset_id=orm_movement.asset_id,
                crypto_quantity=orm_movement.crypto_quantity,
                price_usd=orm_movement.price_usd,
                total_value_usd=orm_movement.total_value_usd,
                fiat_quantity=orm_movement.fiat_quantity,
                fiat_id=orm_movement.fiat_id,
            )
        if kind == MovementKind.TRANSFER:
            return Transfer(
                id=orm_movement.id,
                date=_as_utc(orm_movement.date),
                source_wallet_id=orm_movement.source_wallet_id,
                destination_wallet_id=orm_movement.destination_wallet_id,
                asset_id=orm_movement.asset_id,
                quantity_sent=orm_movement.quantity_sent,
                quantity_received=orm_movement.quantity_received,
            )
        return Swap(
            id=orm_movement.id,
            date=_as_utc(orm_movement.date),
            wallet_id=orm_movement.wallet_id,
            source_asset_id=orm_movement.source_asset_id,
            destination_asset_id=orm_movement.destination_asset_id,
            quantity_source=orm_movement.quantity_source,
            quantity_destination=orm_movement.quantity_destination,
            price_usd_source=orm_movement.price_usd_source,
            price_usd_destination=orm_movement.price_usd_destination,
        )


class CatalogRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add_asset(self, asset: Asset) -> None:
        self._session.add(
            models.AssetOrm(
                id=asset.id,
                name=asset.name,
                symbol=asset.symbol,
                current_price_usd=asset.current_price_usd,
                last_updated=asset.last_updated,
            )
        )

    def add_wallet(self, wallet: Wallet) -> None:
        self._session.add(models.WalletOrm(id=wallet.id, name=wallet.name, symbol=wallet.symbol))

    def add_fiat(self, fiat: FiatCurrency) -> None:
        self._session.add(
            models.FiatCurrencyOrm(id=fiat.id, name=fiat.name, symbol=fiat.symbol, price_usd=fiat.price_usd)
        )

    def update_asset_price(
        self, asset_id: AssetId, price_usd: Decimal, *, updated_at: datetime | None = None
    ) -> Asset:
        orm_asset = self._session.get(models.AssetOrm, asset_id)
        if orm_asset is None:
            raise KeyError(f"Asset {asset_id} not found")
        updated = self._asset_to_domain(orm_asset).with_price(price_usd, updated_at=updated_at)
        orm_asset.current_price_usd = updated.current_price_usd
        orm_asset.last_updated = updated.last_updated
        return updated

    def list_assets(self) -> list[Asset]:
        orm_assets = self._session.query(models.AssetOrm).order_by(models.AssetOrm.symbol.asc()).all()
        return [self._asset_to_domain(asset) for asset in orm_assets]

    def list_wallets(self) -> list[Wallet]:
        orm_wallets = self._session.query(models.WalletOrm).order_by(models.WalletOrm.symbol.asc()).all()
        return [Wallet(id=WalletId(wallet.id), name=wallet.name, symbol=wallet.symbol) for wallet in orm_wallets]

    def list_fiats(self) -> list[FiatCurrency]:
        orm_fiats = self._session.query(models.FiatCurrencyOrm).order_by(models.FiatCurrencyOrm.symbol.asc()).all()
        return [
            FiatCurrency(id=FiatId(fiat.id), name=fiat.name, symbol=fiat.symbol, price_usd=fiat.price_usd)
            for fiat in orm_fiats
        ]

    def snapshot(self) -> CatalogSnapshot:
        return CatalogSnapshot.of(assets=self.list_assets(), wallets=self.list_wallets(), fiats=self.list_fiats())

    def commit(self) -> None:
        _commit(self._session)

    def rollback(self) -> None:
        self._session.rollback()

    @staticmethod
    def _asset_to_domain(orm_asset: models.AssetOrm) -> Asset:
        return Asset(
            id=AssetId(orm_asset.id),
            name=orm_asset.name,
            symbol=orm_asset.symbol,
            current_price_usd=orm_asset.current_price_usd,
            last_updated=_as_utc(orm_asset.last_updated),
        )


class PriceHistoryRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, prices: Iterable[HistoricalPrice]) -> None:
        orm_prices = [
            models.HistoricalPriceOrm(
                id=price.id,
                asset_id=price.asset_id,
                timestamp=price.timestamp,
                price_usd=price.price_usd,
            )
            for price in prices
        ]
        if not orm_prices:
            return
        self._session.add_all(orm_prices)
        _commit(self._session)

    def list(self, asset_id: AssetId | None = None) -> list[HistoricalPrice]:
        query = self._session.query(models.HistoricalPriceOrm)
        if asset_id is not None:
            query = query.filter(models.HistoricalPriceOrm.asset_id == asset_id)
        orm_prices = query.order_by(models.HistoricalPriceOrm.timestamp.asc()).all()
        return [
            HistoricalPrice(
                id=price.id,
                asset_id=AssetId(price.asset_id),
                timestamp=_as_utc(price.timestamp),
                price_usd=price.price_usd,
            )
            for price in orm_prices
        ]


class PriceSyncConfigRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, configs: Iterable[PriceSyncConfig]) -> None:
        orm_configs = [
            models.PriceSyncConfigOrm(
                id=config.id,
                asset_id=config.asset_id,
                sync_url=config.sync_url,
                default_price_usd=config.default_price_usd,
            )
            for config in configs
        ]
        if not orm_configs:
            return
        self._session.add_all(orm_configs)
        _commit(self._session)

    def list(self) -> list[PriceSyncConfig]:
        orm_configs = self._session.query(models.PriceSyncConfigOrm).all()
        return [
            PriceSyncConfig(
                id=config.id,
                asset_id=AssetId(config.asset_id),
                sync_url=config.sync_url,
                default_price_usd=config.default_price_usd,
            )
            for config in orm_configs
        ]
