from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Sequence


class MovementImportError(Exception):
    """Base class for every failure raised while importing a spreadsheet."""


# --- decoding ---------------------------------------------------------------


class DecodeError(MovementImportError):
    pass


class SpreadsheetNotFoundError(DecodeError):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Spreadsheet not found: {self.path}")


class InvalidWorkbookError(DecodeError):
    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path} is not a valid spreadsheet workbook: {reason}")


class InvalidSheetError(DecodeError):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path} has no readable worksheet")


class EmptySpreadsheetError(DecodeError):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path} is empty")


class BadFormatError(DecodeError):
    pass


class MissingColumnsError(BadFormatError):
    def __init__(self, missing: Sequence[str], found: Sequence[str]) -> None:
        self.missing = list(missing)
        self.found = list(found)
        super().__init__(
            f"Missing required columns: {', '.join(self.missing)}. Found columns: {', '.join(self.found) or 'none'}"
        )


# --- row parsing --------------------------------------------------------------


class ParseError(MovementImportError):
    """A single data row failed; ``row`` is 1-based and excludes the header."""

    def __init__(self, row: int, message: str) -> None:
        self.row = row
        super().__init__(f"Row {row}: {message}")


class InvalidDateError(ParseError):
    def __init__(self, row: int, value: str) -> None:
        self.value = value
        super().__init__(row, f"invalid date '{value}', expected DD/MM/YYYY")


class InvalidNumberError(ParseError):
    def __init__(self, row: int, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(row, f"field '{field}' is not a valid number: '{value}'")


class InvalidQuantityError(ParseError):
    def __init__(self, row: int, field: str, value: Decimal) -> None:
        self.field = field
        self.value = value
        super().__init__(row, f"field '{field}' has an invalid amount: {value}")


class WalletNotFoundError(ParseError):
    def __init__(self, row: int, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(
            row,
            f"wallet '{symbol}' not found. Wallets are referenced by their symbol; "
            "the full wallet name was probably used instead",
        )


class AssetNotFoundError(ParseError):
    def __init__(self, row: int, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(row, f"asset '{symbol}' not found in the crypto catalog")


class FiatNotFoundError(ParseError):
    def __init__(self, row: int, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(row, f"fiat currency '{symbol}' not found in the fiat catalog")


class MissingFieldError(ParseError):
    def __init__(self, row: int, field: str) -> None:
        self.field = field
        super().__init__(row, f"required field '{field}' is empty")


class InsufficientFundsError(ParseError):
    def __init__(self, row: int, *, asset: str, wallet: str, requested: Decimal, available: Decimal) -> None:
        self.asset = asset
        self.wallet = wallet
        self.requested = requested
        self.available = available
        super().__init__(
            row,
            f"insufficient {asset} in wallet {wallet}: requested {requested}, available {available}",
        )


class SameWalletError(ParseError):
    def __init__(self, row: int, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(row, f"source and destination wallet are the same ({symbol})")


class SameAssetError(ParseError):
    def __init__(self, row: int, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(row, f"source and destination asset are the same ({symbol})")


class ReceivedExceedsSentError(ParseError):
    def __init__(self, row: int, *, sent: Decimal, received: Decimal) -> None:
        self.sent = sent
        self.received = received
        super().__init__(row, f"quantity received {received} exceeds quantity sent {sent}")


class DuplicateSymbolError(ParseError):
    def __init__(self, row: int, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(row, f"symbol '{symbol}' already exists")


# --- persistence ----------------------------------------------------------------


class StoreCommitError(MovementImportError):
    def __init__(self, label: str, count: int) -> None:
        self.label = label
        self.count = count
        super().__init__(f"Could not save {count} {label}; nothing was imported")
