from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    """Stores Decimals as text so SQLite never rounds quantities through floats."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


# --- catalogs ---------------------------------------------------------------


class AssetOrm(Base):
    __tablename__ = "assets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(20), nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    current_price_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class FiatCurrencyOrm(Base):
    __tablename__ = "fiat_currencies"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(20), nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    price_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)


class WalletOrm(Base):
    __tablename__ = "wallets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(20), nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)


# --- movements --------------------------------------------------------------


class _FiatValuedColumns:
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    wallet_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("wallets.id"), nullable=False)
    asset_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False)
    crypto_quantity: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    price_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    total_value_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    fiat_quantity: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    fiat_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("fiat_currencies.id"), nullable=True)


class DepositOrm(_FiatValuedColumns, Base):
    __tablename__ = "deposits"


class WithdrawalOrm(_FiatValuedColumns, Base):
    __tablename__ = "withdrawals"


class TransferOrm(Base):
    __tablename__ = "transfers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    source_wallet_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("wallets.id"), nullable=False)
    destination_wallet_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("wallets.id"), nullable=False)
    asset_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False)
    quantity_sent: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    quantity_received: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)


class SwapOrm(Base):
    __tablename__ = "swaps"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    wallet_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("wallets.id"), nullable=False)
    source_asset_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False)
    destination_asset_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False)
    quantity_source: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    quantity_destination: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    price_usd_source: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    price_usd_destination: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)


# --- price feed artifacts -----------------------------------------------------


class HistoricalPriceOrm(Base):
    __tablename__ = "historical_prices"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    asset_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    price_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)


class PriceSyncConfigOrm(Base):
    __tablename__ = "price_sync_configs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    asset_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False, unique=True)
    sync_url: Mapped[str] = mapped_column(String, nullable=False)
    default_price_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
