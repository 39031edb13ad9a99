from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, NewType
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from domain.catalog import Asset, AssetId

HistoricalPriceId = NewType("HistoricalPriceId", UUID)
SyncConfigId = NewType("SyncConfigId", UUID)


class HistoricalPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: HistoricalPriceId = HistoricalPriceId(Field(default_factory=uuid4))
    asset_id: AssetId
    timestamp: datetime
    price_usd: Decimal

    @model_validator(mode="after")
    def _validate_price(self) -> HistoricalPrice:
        if self.price_usd < 0:
            raise ValueError("price_usd must be >= 0")
        return self


class PriceSyncConfig(BaseModel):
    """Where the external price feed fetches an asset's price from."""

    model_config = ConfigDict(frozen=True)

    id: SyncConfigId = SyncConfigId(Field(default_factory=uuid4))
    asset_id: AssetId
    sync_url: str
    default_price_usd: Decimal = Decimal(0)


def price_on(prices: Iterable[HistoricalPrice], asset_id: AssetId, day: date) -> Decimal | None:
    """Recorded price of ``asset_id`` on the calendar day ``day``, if any."""
    for price in prices:
        if price.asset_id == asset_id and price.timestamp.date() == day:
            return price.price_usd
    return None


def return_since(asset: Asset, prices: Iterable[HistoricalPrice], day: date) -> Decimal | None:
    """Percentage change between the price recorded on ``day`` and the current price."""
    previous = price_on(prices, asset.id, day)
    if previous is None or previous == 0:
        return None
    return (asset.current_price_usd - previous) / previous * 100
