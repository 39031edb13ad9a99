"""Bootstrap the wallet, crypto and fiat catalogs from spreadsheets."""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Callable, TypeVar

from db.repositories import CatalogRepository, StoreError
from domain.catalog import Asset, CatalogEntry, FiatCurrency, Wallet, normalize_symbol
from importers.errors import DuplicateSymbolError, StoreCommitError
from importers.movement_parsers import SheetRow
from importers.tabular_reader import TabularReader, Worksheet, XlsxReader

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT", bound=CatalogEntry)


class CatalogImporter:
    def __init__(self, catalog_repository: CatalogRepository, reader: TabularReader | None = None) -> None:
        self.catalog_repository = catalog_repository
        self.reader: TabularReader = reader or XlsxReader()

    def import_wallets(self, path: Path | str) -> list[Wallet]:
        worksheet = self._read(path, ("Name", "Symbol"))
        wallets = self._build(
            worksheet,
            {wallet.symbol for wallet in self.catalog_repository.list_wallets()},
            lambda row: Wallet(name=row.required("Name"), symbol=row.required("Symbol")),
        )
        for wallet in wallets:
            self.catalog_repository.add_wallet(wallet)
        self._commit("wallets", len(wallets))
        return wallets

    def import_assets(self, path: Path | str) -> list[Asset]:
        worksheet = self._read(path, ("Name", "Symbol"))
        assets = self._build(
            worksheet,
            {asset.symbol for asset in self.catalog_repository.list_assets()},
            lambda row: Asset(
                name=row.required("Name"),
                symbol=row.required("Symbol"),
                current_price_usd=row.optional_price("PriceUSD") or Decimal(0),
            ),
        )
        for asset in assets:
            self.catalog_repository.add_asset(asset)
        self._commit("cryptos", len(assets))
        return assets

    def import_fiats(self, path: Path | str) -> list[FiatCurrency]:
        worksheet = self._read(path, ("Name", "Symbol", "PriceUSD"))
        fiats = self._build(
            worksheet,
            {fiat.symbol for fiat in self.catalog_repository.list_fiats()},
            lambda row: FiatCurrency(
                name=row.required("Name"),
                symbol=row.required("Symbol"),
                price_usd=row.price("PriceUSD"),
            ),
        )
        for fiat in fiats:
            self.catalog_repository.add_fiat(fiat)
        self._commit("fiats", len(fiats))
        return fiats

    def _read(self, path: Path | str, required: tuple[str, ...]) -> Worksheet:
        worksheet = self.reader.read(path)
        worksheet.validate_headers(required)
        return worksheet

    @staticmethod
    def _build(
        worksheet: Worksheet,
        existing_symbols: set[str],
        make_entry: Callable[[SheetRow], EntryT],
    ) -> list[EntryT]:
        seen = {normalize_symbol(symbol) for symbol in existing_symbols}
        entries: list[EntryT] = []
        for number, cells in enumerate(worksheet.rows, start=1):
            row = SheetRow(number, worksheet, cells)
            if row.is_blank():
                continue
            entry = make_entry(row)
            key = normalize_symbol(entry.symbol)
            if key in seen:
                raise DuplicateSymbolError(number, entry.symbol)
            seen.add(key)
            entries.append(entry)
        return entries

    def _commit(self, label: str, count: int) -> None:
        try:
            self.catalog_repository.commit()
        except StoreError as err:
            self.catalog_repository.rollback()
            raise StoreCommitError(label, count) from err
        logger.info("Imported %d %s", count, label)
