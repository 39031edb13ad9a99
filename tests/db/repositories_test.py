from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from db.repositories import (
    CatalogRepository,
    MovementRepository,
    PriceHistoryRepository,
    PriceSyncConfigRepository,
    StoreError,
)
from domain.catalog import CatalogSnapshot, Wallet
from domain.movements import Deposit, MovementKind
from domain.price_history import HistoricalPrice, PriceSyncConfig
from tests.constants import BINANCE_WALLET, BTC, ETH, EUR, LEDGER_WALLET
from tests.helpers.time_utils import make_deposit, make_swap, make_transfer, make_withdrawal


def _day(day: int) -> datetime:
    return datetime(2024, 1, day, tzinfo=timezone.utc)


def test_insert_is_not_visible_after_rollback(
    movement_repository: MovementRepository, stored_catalog: CatalogSnapshot
) -> None:
    movement_repository.insert(make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="1"))
    movement_repository.rollback()

    assert movement_repository.fetch_all(MovementKind.DEPOSIT) == []


def test_round_trip_every_kind_sorted_by_date(
    movement_repository: MovementRepository, stored_catalog: CatalogSnapshot
) -> None:
    later = make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="0.123456789012345678", date=_day(5))
    earlier = Deposit(
        date=_day(1),
        wallet_id=BINANCE_WALLET.id,
        asset_id=ETH.id,
        crypto_quantity=Decimal("2"),
        price_usd=Decimal("2750"),
        total_value_usd=Decimal("5500"),
        fiat_quantity=Decimal("5000"),
        fiat_id=EUR.id,
    )
    withdrawal = make_withdrawal(wallet=BINANCE_WALLET, asset=BTC, quantity="0.1", date=_day(6))
    transfer = make_transfer(
        source=BINANCE_WALLET, destination=LEDGER_WALLET, asset=ETH, sent="1", received="0.995", date=_day(7)
    )
    swap = make_swap(
        wallet=BINANCE_WALLET,
        source=ETH,
        destination=BTC,
        quantity_source="0.5",
        quantity_destination="0.03",
        price_source="3000",
        price_destination="50000",
        date=_day(8),
    )
    for movement in (later, earlier, withdrawal, transfer, swap):
        movement_repository.insert(movement)
    movement_repository.commit()

    assert movement_repository.fetch_all(MovementKind.DEPOSIT) == [earlier, later]
    assert movement_repository.fetch_all(MovementKind.WITHDRAWAL) == [withdrawal]
    assert movement_repository.fetch_all(MovementKind.TRANSFER) == [transfer]
    assert movement_repository.fetch_all(MovementKind.SWAP) == [swap]
    assert movement_repository.get(MovementKind.DEPOSIT, earlier.id) == earlier


def test_delete_movement(movement_repository: MovementRepository, stored_catalog: CatalogSnapshot) -> None:
    deposit = make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="1")
    movement_repository.insert(deposit)
    movement_repository.commit()

    movement_repository.delete(deposit)
    movement_repository.commit()

    assert movement_repository.count(MovementKind.DEPOSIT) == 0


def test_fetch_all_rejects_unknown_sort_column(movement_repository: MovementRepository) -> None:
    with pytest.raises(ValueError):
        movement_repository.fetch_all(MovementKind.DEPOSIT, sorted_by="colour")


def test_catalog_snapshot_round_trip(catalog_repository: CatalogRepository, stored_catalog: CatalogSnapshot) -> None:
    assert stored_catalog.asset(BTC.id) == BTC
    assert stored_catalog.wallet_by_symbol("BIN") == BINANCE_WALLET
    assert stored_catalog.fiat(EUR.id) == EUR


def test_update_asset_price(catalog_repository: CatalogRepository, stored_catalog: CatalogSnapshot) -> None:
    updated_at = datetime(2024, 6, 1, tzinfo=timezone.utc)

    updated = catalog_repository.update_asset_price(BTC.id, Decimal("61000"), updated_at=updated_at)
    catalog_repository.commit()

    assert updated.current_price_usd == Decimal("61000")
    assert catalog_repository.snapshot().asset(BTC.id).last_updated == updated_at


def test_duplicate_symbol_commit_raises_store_error(
    catalog_repository: CatalogRepository, stored_catalog: CatalogSnapshot
) -> None:
    catalog_repository.add_wallet(Wallet(name="Another Binance", symbol="BIN"))

    with pytest.raises(StoreError):
        catalog_repository.commit()
    catalog_repository.rollback()

    assert len(catalog_repository.list_wallets()) == 3


def test_price_history_and_sync_configs(test_session: Session, stored_catalog: CatalogSnapshot) -> None:
    prices = PriceHistoryRepository(test_session)
    configs = PriceSyncConfigRepository(test_session)

    prices.create_many(
        [
            HistoricalPrice(asset_id=BTC.id, timestamp=_day(2), price_usd=Decimal("42000")),
            HistoricalPrice(asset_id=BTC.id, timestamp=_day(1), price_usd=Decimal("41000")),
            HistoricalPrice(asset_id=ETH.id, timestamp=_day(1), price_usd=Decimal("2300")),
        ]
    )
    configs.create_many([PriceSyncConfig(asset_id=BTC.id, sync_url="https://prices.example/btc")])

    assert [price.price_usd for price in prices.list(BTC.id)] == [Decimal("41000"), Decimal("42000")]
    assert len(prices.list()) == 3
    (config,) = configs.list()
    assert config.sync_url == "https://prices.example/btc"
    assert config.default_price_usd == Decimal("0")
