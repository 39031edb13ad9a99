from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.movements import Deposit, Swap, Transfer, Withdrawal
from importers.errors import (
    AssetNotFoundError,
    FiatNotFoundError,
    InsufficientFundsError,
    InvalidDateError,
    InvalidNumberError,
    InvalidQuantityError,
    MissingColumnsError,
    MissingFieldError,
    ReceivedExceedsSentError,
    SameAssetError,
    SameWalletError,
    WalletNotFoundError,
)
from importers.movement_parsers import DepositParser, SwapParser, TransferParser, WithdrawalParser
from importers.tabular_reader import Worksheet
from tests.constants import BINANCE_WALLET, BTC, CATALOG, ETH, EUR, LEDGER_WALLET
from tests.helpers.time_utils import make_deposit
from tests.helpers.workbooks import DEPOSIT_HEADER, SWAP_HEADER, TRANSFER_HEADER


def deposit_row(
    date: str = "01/01/2024",
    wallet: str = "BIN",
    asset: str = "BTC",
    quantity: str = "0.5",
    price_usd: str = "",
    total_usd: str = "",
    fiat_qty: str = "",
    fiat_symbol: str = "",
) -> list[str]:
    return [date, wallet, asset, quantity, price_usd, total_usd, fiat_qty, fiat_symbol]


def sheet(header: list[str], *rows: list[str]) -> Worksheet:
    return Worksheet(header_row=header, rows=list(rows))


def test_deposit_row_is_valued_at_current_price_when_unspecified() -> None:
    (deposit,) = DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row()), CATALOG)

    assert isinstance(deposit, Deposit)
    assert deposit.date == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert deposit.wallet_id == BINANCE_WALLET.id
    assert deposit.asset_id == BTC.id
    assert deposit.crypto_quantity == Decimal("0.5")
    assert deposit.total_value_usd == Decimal("25000")
    assert deposit.price_usd == Decimal("50000")
    assert not deposit.uses_fiat


def test_deposit_usd_value_precedence() -> None:
    worksheet = sheet(
        DEPOSIT_HEADER,
        deposit_row(quantity="2", price_usd="100", total_usd="150"),
        deposit_row(quantity="2", price_usd="100"),
        deposit_row(quantity="2", fiat_qty="1000", fiat_symbol="eur"),
    )

    total_given, price_given, fiat_given = DepositParser().parse(worksheet, CATALOG)

    assert total_given.total_value_usd == Decimal("150")
    assert total_given.price_usd == Decimal("100")
    assert price_given.total_value_usd == Decimal("200")
    assert fiat_given.total_value_usd == Decimal("1100.00")
    assert fiat_given.price_usd == Decimal("550")
    assert fiat_given.fiat_id == EUR.id
    assert fiat_given.fiat_quantity == Decimal("1000")


def test_deposit_optional_columns_may_be_absent() -> None:
    worksheet = sheet(["Quantity", "Asset", "Wallet", "Date"], ["1", "eth", "ledger", "15/06/2023"])

    (deposit,) = DepositParser().parse(worksheet, CATALOG)

    assert deposit.wallet_id == LEDGER_WALLET.id
    assert deposit.asset_id == ETH.id
    assert deposit.total_value_usd == Decimal("3000")


def test_fiat_quantity_without_symbol_is_missing_field() -> None:
    with pytest.raises(MissingFieldError) as exc_info:
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(fiat_qty="1000")), CATALOG)

    assert exc_info.value.field == "FiatSymbol"
    assert exc_info.value.row == 1


def test_unknown_fiat_symbol() -> None:
    with pytest.raises(FiatNotFoundError):
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(fiat_qty="10", fiat_symbol="GBP")), CATALOG)


def test_missing_headers_fail_before_rows_listing_all_of_them() -> None:
    worksheet = sheet(["Date", "Asset"], ["not a date", "???"])

    with pytest.raises(MissingColumnsError) as exc_info:
        DepositParser().parse(worksheet, CATALOG)

    assert exc_info.value.missing == ["Wallet", "Quantity"]


def test_invalid_date_reports_row_and_literal() -> None:
    worksheet = sheet(DEPOSIT_HEADER, deposit_row(), deposit_row(date="2024-01-02"))

    with pytest.raises(InvalidDateError) as exc_info:
        DepositParser().parse(worksheet, CATALOG)

    assert exc_info.value.row == 2
    assert exc_info.value.value == "2024-01-02"


@pytest.mark.parametrize("literal", ["abc", "1,5", "NaN", "Infinity"])
def test_invalid_number_names_field_and_literal(literal: str) -> None:
    with pytest.raises(InvalidNumberError) as exc_info:
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(quantity=literal)), CATALOG)

    assert exc_info.value.field == "Quantity"
    assert exc_info.value.value == literal


@pytest.mark.parametrize(
    "row, field, literal",
    [
        (deposit_row(quantity="1E+999999", price_usd="10"), "Quantity", "1E+999999"),
        (deposit_row(quantity="1E-1000000", total_usd="10"), "Quantity", "1E-1000000"),
        (deposit_row(total_usd="0E-1000000"), "TotalUSD", "0E-1000000"),
    ],
)
def test_out_of_range_numbers_are_invalid(row: list[str], field: str, literal: str) -> None:
    with pytest.raises(InvalidNumberError) as exc_info:
        DepositParser().parse(sheet(DEPOSIT_HEADER, row), CATALOG)

    assert exc_info.value.field == field
    assert exc_info.value.value == literal


def test_small_quantities_are_accepted() -> None:
    (deposit,) = DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(quantity="0.000000000000000001")), CATALOG)

    assert deposit.crypto_quantity == Decimal("1E-18")


@pytest.mark.parametrize("literal", ["0", "-1"])
def test_non_positive_quantity(literal: str) -> None:
    with pytest.raises(InvalidQuantityError):
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(quantity=literal)), CATALOG)


def test_negative_price() -> None:
    with pytest.raises(InvalidQuantityError) as exc_info:
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(price_usd="-5")), CATALOG)

    assert exc_info.value.field == "PriceUSD"


def test_wallet_referenced_by_name_warns_about_symbol() -> None:
    with pytest.raises(WalletNotFoundError) as exc_info:
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(wallet="Binance")), CATALOG)

    assert exc_info.value.symbol == "Binance"
    assert "symbol" in str(exc_info.value)
    assert "Row 1" in str(exc_info.value)


def test_unknown_asset() -> None:
    with pytest.raises(AssetNotFoundError):
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(asset="Bitcoin")), CATALOG)


def test_empty_required_cell() -> None:
    with pytest.raises(MissingFieldError) as exc_info:
        DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(quantity="")), CATALOG)

    assert exc_info.value.field == "Quantity"


def test_blank_rows_are_skipped_but_counted() -> None:
    worksheet = sheet(
        DEPOSIT_HEADER,
        deposit_row(),
        [""] * len(DEPOSIT_HEADER),
        deposit_row(date="bad"),
    )

    with pytest.raises(InvalidDateError) as exc_info:
        DepositParser().parse(worksheet, CATALOG)

    assert exc_info.value.row == 3


def test_withdrawal_uses_funds_deposited_earlier_in_the_same_file() -> None:
    deposits = DepositParser().parse(sheet(DEPOSIT_HEADER, deposit_row(quantity="1")), CATALOG)

    (withdrawal,) = WithdrawalParser().parse(
        sheet(DEPOSIT_HEADER, deposit_row(quantity="1", total_usd="52000")), CATALOG, deposits
    )

    assert isinstance(withdrawal, Withdrawal)
    assert withdrawal.total_value_usd == Decimal("52000")
    assert withdrawal.price_usd == Decimal("52000")


def test_withdrawal_running_balance_across_rows() -> None:
    ledger = [make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="1.0")]
    worksheet = sheet(DEPOSIT_HEADER, deposit_row(quantity="0.6"), deposit_row(quantity="0.6"))

    with pytest.raises(InsufficientFundsError) as exc_info:
        WithdrawalParser().parse(worksheet, CATALOG, ledger)

    error = exc_info.value
    assert error.row == 2
    assert error.asset == "BTC"
    assert error.wallet == "BIN"
    assert error.requested == Decimal("0.6")
    assert error.available == Decimal("0.4")


def test_transfer_row() -> None:
    ledger = [make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="1.0")]
    worksheet = sheet(TRANSFER_HEADER, ["02/01/2024", "BIN", "LEDGER", "BTC", "1.0", "0.99"])

    (transfer,) = TransferParser().parse(worksheet, CATALOG, ledger)

    assert isinstance(transfer, Transfer)
    assert transfer.source_wallet_id == BINANCE_WALLET.id
    assert transfer.destination_wallet_id == LEDGER_WALLET.id
    assert transfer.quantity_sent == Decimal("1.0")
    assert transfer.quantity_received == Decimal("0.99")


def test_transfer_received_exceeds_sent() -> None:
    ledger = [make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="5")]
    worksheet = sheet(TRANSFER_HEADER, ["02/01/2024", "BIN", "LEDGER", "BTC", "1.0", "1.1"])

    with pytest.raises(ReceivedExceedsSentError) as exc_info:
        TransferParser().parse(worksheet, CATALOG, ledger)

    assert exc_info.value.sent == Decimal("1.0")
    assert exc_info.value.received == Decimal("1.1")


def test_transfer_same_wallet() -> None:
    worksheet = sheet(TRANSFER_HEADER, ["02/01/2024", "BIN", "bin", "BTC", "1.0", "1.0"])

    with pytest.raises(SameWalletError):
        TransferParser().parse(worksheet, CATALOG)


def test_transfer_without_funds() -> None:
    worksheet = sheet(TRANSFER_HEADER, ["02/01/2024", "BIN", "LEDGER", "BTC", "1.0", "1.0"])

    with pytest.raises(InsufficientFundsError) as exc_info:
        TransferParser().parse(worksheet, CATALOG)

    assert exc_info.value.available == Decimal("0")


def test_swap_row() -> None:
    ledger = [make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="1")]
    worksheet = sheet(SWAP_HEADER, ["03/01/2024", "BIN", "BTC", "ETH", "0.5", "8", "48000", "3000"])

    (swap,) = SwapParser().parse(worksheet, CATALOG, ledger)

    assert isinstance(swap, Swap)
    assert swap.source_asset_id == BTC.id
    assert swap.destination_asset_id == ETH.id
    assert swap.value_usd_source == Decimal("24000.0")
    assert swap.value_usd_destination == Decimal("24000")


def test_swap_same_asset() -> None:
    worksheet = sheet(SWAP_HEADER, ["03/01/2024", "BIN", "BTC", "btc", "0.5", "0.5", "1", "1"])

    with pytest.raises(SameAssetError):
        SwapParser().parse(worksheet, CATALOG)


def test_swap_received_asset_funds_later_swap_in_same_file() -> None:
    ledger = [make_deposit(wallet=BINANCE_WALLET, asset=BTC, quantity="1")]
    worksheet = sheet(
        SWAP_HEADER,
        ["03/01/2024", "BIN", "BTC", "ETH", "1", "16", "48000", "3000"],
        ["04/01/2024", "BIN", "ETH", "BTC", "16", "1", "3000", "48000"],
    )

    swaps = SwapParser().parse(worksheet, CATALOG, ledger)

    assert len(swaps) == 2
