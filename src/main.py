from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from time import perf_counter
from typing import Sequence

from config import config
from db.db import init_db
from db.repositories import CatalogRepository, MovementRepository, StoreError
from db.wipe import wipe_all
from domain.movements import Ledger, MovementKind
from domain.portfolio import gain_distribution, summarize_by_asset, summarize_by_wallet, summarize_portfolio
from importers.catalog_import import CatalogImporter
from importers.errors import MovementImportError
from importers.movement_import import IMPORTERS
from importers.progress import LoggingProgressListener
from utils.portfolio_report import render_asset_summaries, render_portfolio_summary, render_wallet_summaries

logger = logging.getLogger(__name__)

IMPORT_KINDS = {
    "deposits": MovementKind.DEPOSIT,
    "withdrawals": MovementKind.WITHDRAWAL,
    "transfers": MovementKind.TRANSFER,
    "swaps": MovementKind.SWAP,
}


def load_catalogs(db_file: str, *, wallets: Path | None, assets: Path | None, fiats: Path | None) -> None:
    session = init_db(db_file=db_file)
    importer = CatalogImporter(CatalogRepository(session))
    if fiats is not None:
        print(f"Imported {len(importer.import_fiats(fiats))} fiat currencies from {fiats}")
    if assets is not None:
        print(f"Imported {len(importer.import_assets(assets))} cryptos from {assets}")
    if wallets is not None:
        print(f"Imported {len(importer.import_wallets(wallets))} wallets from {wallets}")


def import_movements(db_file: str, kind: MovementKind, path: Path) -> None:
    session = init_db(db_file=db_file)
    catalog = CatalogRepository(session).snapshot()
    importer = IMPORTERS[kind](
        MovementRepository(session),
        progress=LoggingProgressListener(),
        progress_every=config().progress_every,
    )
    count = importer.run(path, catalog)
    print(f"Imported {count} {importer.label.lower()} from {path}")


def show_summary(db_file: str, *, by_wallet: bool) -> None:
    start = perf_counter()
    session = init_db(db_file=db_file)
    catalog = CatalogRepository(session).snapshot()
    repository = MovementRepository(session)
    ledger = Ledger()
    for kind in MovementKind:
        ledger.extend(repository.fetch_all(kind))

    asset_summaries = summarize_by_asset(ledger, catalog)
    print(render_asset_summaries(asset_summaries))
    print()
    print(render_portfolio_summary(summarize_portfolio(asset_summaries), gain_distribution(asset_summaries)))
    if by_wallet:
        print()
        print(render_wallet_summaries(summarize_by_wallet(ledger, catalog)))
    logger.info("Summarized %d movements in %.3fs", len(ledger), perf_counter() - start)


def wipe(db_file: str) -> None:
    session = init_db(db_file=db_file)
    deleted = wipe_all(session)
    print(f"Deleted {sum(deleted.values())} records")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Track a crypto portfolio from spreadsheet imports.")
    parser.add_argument("--db-file", default=None, help="SQLite database file (defaults to settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    catalogs = subparsers.add_parser("load-catalogs", help="Load wallets, cryptos and fiats from workbooks")
    catalogs.add_argument("--wallets", type=Path)
    catalogs.add_argument("--assets", type=Path)
    catalogs.add_argument("--fiats", type=Path)

    movements = subparsers.add_parser("import", help="Import one movement workbook")
    movements.add_argument("kind", choices=sorted(IMPORT_KINDS))
    movements.add_argument("path", type=Path)

    summary = subparsers.add_parser("summary", help="Print portfolio valuation")
    summary.add_argument("--by-wallet", action="store_true")

    wipe_parser = subparsers.add_parser("wipe", help="Delete all movements, prices and catalogs")
    wipe_parser.add_argument("--yes", action="store_true", help="Confirm the wipe")

    args = parser.parse_args(argv)
    db_file = args.db_file or config().db_file

    try:
        if args.command == "load-catalogs":
            load_catalogs(db_file, wallets=args.wallets, assets=args.assets, fiats=args.fiats)
        elif args.command == "import":
            import_movements(db_file, IMPORT_KINDS[args.kind], args.path)
        elif args.command == "summary":
            show_summary(db_file, by_wallet=args.by_wallet)
        elif args.command == "wipe":
            if not args.yes:
                print("Refusing to wipe without --yes", file=sys.stderr)
                return 2
            wipe(db_file)
    except (MovementImportError, StoreError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


def cli() -> None:
    logging.basicConfig(level=config().log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    sys.exit(main())


if __name__ == "__main__":
    cli()
