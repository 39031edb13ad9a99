from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, NewType, Sequence
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

AssetId = NewType("AssetId", UUID)
WalletId = NewType("WalletId", UUID)
FiatId = NewType("FiatId", UUID)

NAME_MAX_LENGTH = 20
SYMBOL_MAX_LENGTH = 10


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


class CatalogEntry(BaseModel):
    """Common shape of catalog reference data: a display name plus a unique symbol."""

    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str

    @field_validator("name", mode="before")
    @classmethod
    def _truncate_name(cls, value: str) -> str:
        return str(value).strip()[:NAME_MAX_LENGTH]

    @field_validator("symbol", mode="before")
    @classmethod
    def _truncate_symbol(cls, value: str) -> str:
        return str(value).strip()[:SYMBOL_MAX_LENGTH]

    @model_validator(mode="after")
    def _validate_symbol(self) -> CatalogEntry:
        if not self.symbol:
            raise ValueError("symbol must be non-empty")
        return self


class Asset(CatalogEntry):
    id: AssetId = AssetId(Field(default_factory=uuid4))
    current_price_usd: Decimal = Decimal(0)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _validate_price(self) -> Asset:
        if self.current_price_usd < 0:
            raise ValueError("current_price_usd must be >= 0")
        return self

    def with_price(self, price_usd: Decimal, *, updated_at: datetime | None = None) -> Asset:
        return self.model_copy(
            update={
                "current_price_usd": price_usd,
                "last_updated": updated_at or datetime.now(timezone.utc),
            }
        )


class FiatCurrency(CatalogEntry):
    id: FiatId = FiatId(Field(default_factory=uuid4))
    # USD value of one unit of this currency.
    price_usd: Decimal

    @model_validator(mode="after")
    def _validate_price(self) -> FiatCurrency:
        if self.price_usd < 0:
            raise ValueError("price_usd must be >= 0")
        return self


class Wallet(CatalogEntry):
    id: WalletId = WalletId(Field(default_factory=uuid4))


def _index_by_symbol(entries: Iterable[CatalogEntry], kind: str) -> dict[str, CatalogEntry]:
    index: dict[str, CatalogEntry] = {}
    for entry in entries:
        key = normalize_symbol(entry.symbol)
        if key in index:
            raise ValueError(f"Duplicate {kind} symbol in catalog: {key}")
        index[key] = entry
    return index


class CatalogSnapshot(BaseModel):
    """Immutable view of the catalogs at the time an import or calculation runs.

    Symbol lookups are case-insensitive; the spreadsheets reference wallets,
    assets and fiats by symbol, never by display name.
    """

    model_config = ConfigDict(frozen=True)

    assets: tuple[Asset, ...] = ()
    wallets: tuple[Wallet, ...] = ()
    fiats: tuple[FiatCurrency, ...] = ()

    @model_validator(mode="after")
    def _validate_unique_symbols(self) -> CatalogSnapshot:
        _index_by_symbol(self.assets, "asset")
        _index_by_symbol(self.wallets, "wallet")
        _index_by_symbol(self.fiats, "fiat")
        return self

    @classmethod
    def of(
        cls,
        *,
        assets: Sequence[Asset] = (),
        wallets: Sequence[Wallet] = (),
        fiats: Sequence[FiatCurrency] = (),
    ) -> CatalogSnapshot:
        return cls(assets=tuple(assets), wallets=tuple(wallets), fiats=tuple(fiats))

    def asset_by_symbol(self, symbol: str) -> Asset | None:
        key = normalize_symbol(symbol)
        return next((asset for asset in self.assets if normalize_symbol(asset.symbol) == key), None)

    def wallet_by_symbol(self, symbol: str) -> Wallet | None:
        key = normalize_symbol(symbol)
        return next((wallet for wallet in self.wallets if normalize_symbol(wallet.symbol) == key), None)

    def fiat_by_symbol(self, symbol: str) -> FiatCurrency | None:
        key = normalize_symbol(symbol)
        return next((fiat for fiat in self.fiats if normalize_symbol(fiat.symbol) == key), None)

    def asset(self, asset_id: AssetId) -> Asset | None:
        return next((asset for asset in self.assets if asset.id == asset_id), None)

    def wallet(self, wallet_id: WalletId) -> Wallet | None:
        return next((wallet for wallet in self.wallets if wallet.id == wallet_id), None)

    def fiat(self, fiat_id: FiatId) -> FiatCurrency | None:
        return next((fiat for fiat in self.fiats if fiat.id == fiat_id), None)
