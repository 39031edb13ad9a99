"""Turn decoded spreadsheet rows into validated movements, one parser per kind."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import ClassVar, Iterable

from domain.catalog import Asset, CatalogSnapshot, FiatCurrency, Wallet
from domain.movements import Deposit, Movement, MovementKind, Swap, Transfer, Withdrawal
from domain.wallet_balance_tracker import WalletBalanceError, WalletBalanceTracker
from importers.errors import (
    AssetNotFoundError,
    FiatNotFoundError,
    InsufficientFundsError,
    InvalidDateError,
    InvalidNumberError,
    InvalidQuantityError,
    MissingFieldError,
    ReceivedExceedsSentError,
    SameAssetError,
    SameWalletError,
    WalletNotFoundError,
)
from importers.tabular_reader import DATE_FORMAT, Worksheet

logger = logging.getLogger(__name__)

# Numeric cells must keep their decimal exponent within +/- this range.
MAX_EXPONENT = 100


class SheetRow:
    """One data row with typed accessors; every failure names the row and the column."""

    def __init__(self, number: int, worksheet: Worksheet, cells: list[str]) -> None:
        self.number = number
        self._worksheet = worksheet
        self._cells = cells

    def text(self, column: str) -> str:
        index = self._worksheet.column_index(column)
        if index is None or index >= len(self._cells):
            return ""
        return self._cells[index].strip()

    def required(self, column: str) -> str:
        value = self.text(column)
        if not value:
            raise MissingFieldError(self.number, column)
        return value

    def date(self, column: str) -> datetime:
        value = self.required(column)
        try:
            parsed = datetime.strptime(value, DATE_FORMAT)
        except ValueError as err:
            raise InvalidDateError(self.number, value) from err
        return parsed.replace(tzinfo=timezone.utc)

    def decimal(self, column: str) -> Decimal:
        return self._to_decimal(column, self.required(column))

    def optional_decimal(self, column: str) -> Decimal | None:
        value = self.text(column)
        if not value:
            return None
        return self._to_decimal(column, value)

    def quantity(self, column: str) -> Decimal:
        value = self.decimal(column)
        if value <= 0:
            raise InvalidQuantityError(self.number, column, value)
        return value

    def price(self, column: str) -> Decimal:
        return self._non_negative(column, self.decimal(column))

    def optional_price(self, column: str) -> Decimal | None:
        value = self.optional_decimal(column)
        if value is None:
            return None
        return self._non_negative(column, value)

    def wallet(self, catalog: CatalogSnapshot, column: str) -> Wallet:
        symbol = self.required(column)
        wallet = catalog.wallet_by_symbol(symbol)
        if wallet is None:
            raise WalletNotFoundError(self.number, symbol)
        return wallet

    def asset(self, catalog: CatalogSnapshot, column: str) -> Asset:
        symbol = self.required(column)
        asset = catalog.asset_by_symbol(symbol)
        if asset is None:
            raise AssetNotFoundError(self.number, symbol)
        return asset

    def fiat(self, catalog: CatalogSnapshot, column: str) -> FiatCurrency:
        symbol = self.required(column)
        fiat = catalog.fiat_by_symbol(symbol)
        if fiat is None:
            raise FiatNotFoundError(self.number, symbol)
        return fiat

    def is_blank(self) -> bool:
        return all(not cell.strip() for cell in self._cells)

    def _to_decimal(self, column: str, value: str) -> Decimal:
        try:
            number = Decimal(value)
        except InvalidOperation as err:
            raise InvalidNumberError(self.number, column, value) from err
        if not number.is_finite():
            raise InvalidNumberError(self.number, column, value)
        if number.adjusted() > MAX_EXPONENT or number.as_tuple().exponent < -MAX_EXPONENT:
            raise InvalidNumberError(self.number, column, value)
        return number

    def _non_negative(self, column: str, value: Decimal) -> Decimal:
        if value < 0:
            raise InvalidQuantityError(self.number, column, value)
        return value


class MovementParser(ABC):
    kind: ClassVar[MovementKind]
    required_columns: ClassVar[tuple[str, ...]]
    optional_columns: ClassVar[tuple[str, ...]] = ()

    def parse(
        self,
        worksheet: Worksheet,
        catalog: CatalogSnapshot,
        ledger: Iterable[Movement] | None = None,
    ) -> list[Movement]:
        """Parse every data row or fail on the first bad one.

        Outflows are checked against ``ledger`` (the committed movements) plus
        every row already accepted from this worksheet, in row order.
        """
        worksheet.validate_headers(self.required_columns)
        tracker = WalletBalanceTracker.from_movements(ledger or ())

        movements: list[Movement] = []
        for number, cells in enumerate(worksheet.rows, start=1):
            row = SheetRow(number, worksheet, cells)
            if row.is_blank():
                continue
            movement = self.parse_row(row, catalog)
            self._apply_balance(row, movement, tracker, catalog)
            movements.append(movement)

        logger.info("Parsed %d %s rows", len(movements), self.kind.value.lower())
        return movements

    @abstractmethod
    def parse_row(self, row: SheetRow, catalog: CatalogSnapshot) -> Movement:
        ...

    @staticmethod
    def _apply_balance(
        row: SheetRow,
        movement: Movement,
        tracker: WalletBalanceTracker,
        catalog: CatalogSnapshot,
    ) -> None:
        try:
            tracker.apply_legs(movement.balance_legs())
        except WalletBalanceError as err:
            asset = catalog.asset(err.asset_id)
            wallet = catalog.wallet(err.wallet_id)
            raise InsufficientFundsError(
                row.number,
                asset=asset.symbol if asset else str(err.asset_id),
                wallet=wallet.symbol if wallet else str(err.wallet_id),
                requested=-err.attempted_quantity,
                available=err.available_balance,
            ) from err


class _FiatValuedParser(MovementParser):
    required_columns = ("Date", "Wallet", "Asset", "Quantity")
    optional_columns = ("PriceUSD", "TotalUSD", "FiatQty", "FiatSymbol")

    movement_type: ClassVar[type[Deposit] | type[Withdrawal]]

    def parse_row(self, row: SheetRow, catalog: CatalogSnapshot) -> Movement:
        date = row.date("Date")
        wallet = row.wallet(catalog, "Wallet")
        asset = row.asset(catalog, "Asset")
        quantity = row.quantity("Quantity")
        price_usd = row.optional_price("PriceUSD")
        total_usd = row.optional_price("TotalUSD")

        fiat: FiatCurrency | None = None
        fiat_quantity: Decimal | None = None
        if row.text("FiatQty") or row.text("FiatSymbol"):
            fiat_quantity = row.price("FiatQty")
            fiat = row.fiat(catalog, "FiatSymbol")

        if total_usd is None:
            if price_usd is not None:
                total_usd = price_usd * quantity
            elif fiat is not None and fiat_quantity is not None:
                total_usd = fiat_quantity * fiat.price_usd
            else:
                total_usd = quantity * asset.current_price_usd
        if price_usd is None:
            price_usd = total_usd / quantity

        return self.movement_type(
            date=date,
            wallet_id=wallet.id,
            asset_id=asset.id,
            crypto_quantity=quantity,
            price_usd=price_usd,
            total_value_usd=total_usd,
            fiat_quantity=fiat_quantity,
            fiat_id=fiat.id if fiat else None,
        )


class DepositParser(_FiatValuedParser):
    kind = MovementKind.DEPOSIT
    movement_type = Deposit


class WithdrawalParser(_FiatValuedParser):
    kind = MovementKind.WITHDRAWAL
    movement_type = Withdrawal


class TransferParser(MovementParser):
    kind = MovementKind.TRANSFER
    required_columns = ("Date", "SourceWallet", "DestWallet", "Asset", "QtySent", "QtyReceived")

    def parse_row(self, row: SheetRow, catalog: CatalogSnapshot) -> Movement:
        date = row.date("Date")
        source = row.wallet(catalog, "SourceWallet")
        destination = row.wallet(catalog, "DestWallet")
        if source.id == destination.id:
            raise SameWalletError(row.number, source.symbol)
        asset = row.asset(catalog, "Asset")
        sent = row.quantity("QtySent")
        received = row.quantity("QtyReceived")
        if received > sent:
            raise ReceivedExceedsSentError(row.number, sent=sent, received=received)

        return Transfer(
            date=date,
            source_wallet_id=source.id,
            destination_wallet_id=destination.id,
            asset_id=asset.id,
            quantity_sent=sent,
            quantity_received=received,
        )


class SwapParser(MovementParser):
    kind = MovementKind.SWAP
    required_columns = (
        "Date",
        "Wallet",
        "SourceAsset",
        "DestAsset",
        "QtySource",
        "QtyDest",
        "PriceSource",
        "PriceDest",
    )

    def parse_row(self, row: SheetRow, catalog: CatalogSnapshot) -> Movement:
        date = row.date("Date")
        wallet = row.wallet(catalog, "Wallet")
        source = row.asset(catalog, "SourceAsset")
        destination = row.asset(catalog, "DestAsset")
        if source.id == destination.id:
            raise SameAssetError(row.number, source.symbol)

        return Swap(
            date=date,
            wallet_id=wallet.id,
            source_asset_id=source.id,
            destination_asset_id=destination.id,
            quantity_source=row.quantity("QtySource"),
            quantity_destination=row.quantity("QtyDest"),
            price_usd_source=row.price("PriceSource"),
            price_usd_destination=row.price("PriceDest"),
        )


PARSERS: dict[MovementKind, type[MovementParser]] = {
    MovementKind.DEPOSIT: DepositParser,
    MovementKind.WITHDRAWAL: WithdrawalParser,
    MovementKind.TRANSFER: TransferParser,
    MovementKind.SWAP: SwapParser,
}
