from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from contextlib import ExitStack
from pathlib import Path
from time import perf_counter
from typing import Callable, ClassVar, Protocol, Sequence

from db.repositories import StoreError
from domain.catalog import CatalogSnapshot
from domain.movements import Ledger, Movement, MovementKind
from importers.errors import StoreCommitError
from importers.movement_parsers import (
    DepositParser,
    MovementParser,
    SwapParser,
    TransferParser,
    WithdrawalParser,
)
from importers.progress import LoggingProgressListener, ProgressListener
from importers.tabular_reader import TabularReader, XlsxReader

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_EVERY = 10

# One in-flight import per movement kind.
_IMPORT_LOCKS: dict[MovementKind, threading.Lock] = {kind: threading.Lock() for kind in MovementKind}


class MovementStore(Protocol):
    def insert(self, movement: Movement) -> None:
        ...

    def delete(self, movement: Movement) -> None:
        ...

    def fetch_all(self, kind: MovementKind, sorted_by: str = "date") -> list[Movement]:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


def committed_ledger(store: MovementStore) -> Ledger:
    ledger = Ledger()
    for kind in MovementKind:
        ledger.extend(store.fetch_all(kind))
    return ledger


def _save(store: MovementStore, label: str, count: int, stage: Callable[[], None]) -> None:
    """Stage and commit as one unit; on failure the store is rolled back."""
    try:
        stage()
        store.commit()
    except StoreError as err:
        store.rollback()
        raise StoreCommitError(label, count) from err
    except BaseException:
        store.rollback()
        raise


class MovementImporter:
    kind: ClassVar[MovementKind]
    label: ClassVar[str]
    parser_class: ClassVar[type[MovementParser]]

    def __init__(
        self,
        store: MovementStore,
        progress: ProgressListener | None = None,
        reader: TabularReader | None = None,
        progress_every: int | None = None,
    ) -> None:
        if progress_every is not None and progress_every <= 0:
            raise ValueError("progress_every must be > 0")
        self.store = store
        self.progress: ProgressListener = progress or LoggingProgressListener()
        self.reader: TabularReader = reader or XlsxReader()
        self.progress_every = progress_every or DEFAULT_PROGRESS_EVERY
        self.parser = self.parser_class()

    def run(self, path: Path | str, catalog: CatalogSnapshot) -> int:
        """Import every row of ``path`` in one commit and return how many were imported."""
        with _IMPORT_LOCKS[self.kind]:
            start = perf_counter()
            try:
                movements = self.parse_file(path, catalog, committed_ledger(self.store))
                _save(self.store, self.label.lower(), len(movements), lambda: self.stage(movements))
            except Exception as err:
                self.progress.on_error(err)
                raise
            self.report_complete(len(movements))
            logger.info(
                "Imported %d %s from %s in %.3fs", len(movements), self.label.lower(), path, perf_counter() - start
            )
            return len(movements)

    def parse_file(self, path: Path | str, catalog: CatalogSnapshot, ledger: Ledger) -> list[Movement]:
        worksheet = self.reader.read(path)
        return self.parser.parse(worksheet, catalog, ledger)

    def stage(self, movements: Sequence[Movement]) -> None:
        total = len(movements)
        for index, movement in enumerate(movements, start=1):
            self.store.insert(movement)
            if index % self.progress_every == 0:
                self.progress.on_progress(f"Importing {self.label.lower()}: {index}/{total}")

    def report_complete(self, total: int) -> None:
        self.progress.on_progress(f"{total} {self.label.lower()} imported")
        self.progress.on_task_complete(self.label, total)


class DepositImporter(MovementImporter):
    kind = MovementKind.DEPOSIT
    label = "Deposits"
    parser_class = DepositParser


class WithdrawalImporter(MovementImporter):
    kind = MovementKind.WITHDRAWAL
    label = "Withdrawals"
    parser_class = WithdrawalParser


class TransferImporter(MovementImporter):
    kind = MovementKind.TRANSFER
    label = "Transfers"
    parser_class = TransferParser


class SwapImporter(MovementImporter):
    kind = MovementKind.SWAP
    label = "Swaps"
    parser_class = SwapParser


IMPORTERS: dict[MovementKind, type[MovementImporter]] = {
    MovementKind.DEPOSIT: DepositImporter,
    MovementKind.WITHDRAWAL: WithdrawalImporter,
    MovementKind.TRANSFER: TransferImporter,
    MovementKind.SWAP: SwapImporter,
}


def import_batch(
    store: MovementStore,
    sources: Sequence[tuple[MovementKind, Path | str]],
    catalog: CatalogSnapshot,
    progress: ProgressListener | None = None,
    reader: TabularReader | None = None,
    progress_every: int | None = None,
) -> dict[MovementKind, int]:
    """Import several files as one unit: later files see rows accepted from earlier ones.

    Files are parsed in the given order and committed together; any failure
    leaves the store untouched.
    """
    progress = progress or LoggingProgressListener()
    importers = [
        (IMPORTERS[kind](store, progress=progress, reader=reader, progress_every=progress_every), path)
        for kind, path in sources
    ]
    kinds = sorted({importer.kind for importer, _ in importers}, key=list(MovementKind).index)

    with ExitStack() as stack:
        for kind in kinds:
            stack.enter_context(_IMPORT_LOCKS[kind])

        staged: list[tuple[MovementImporter, list[Movement]]] = []
        try:
            ledger = committed_ledger(store)
            for importer, path in importers:
                movements = importer.parse_file(path, catalog, ledger)
                ledger.extend(movements)
                staged.append((importer, movements))

            def stage_all() -> None:
                for importer, movements in staged:
                    importer.stage(movements)

            _save(store, "movements", sum(len(movements) for _, movements in staged), stage_all)
        except Exception as err:
            progress.on_error(err)
            raise

    counts: dict[MovementKind, int] = {}
    for importer, movements in staged:
        importer.report_complete(len(movements))
        counts[importer.kind] = counts.get(importer.kind, 0) + len(movements)
    logger.info("Imported batch: %s", ", ".join(f"{kind.value.lower()}={count}" for kind, count in counts.items()))
    return counts


def submit_import(
    executor: Executor,
    importer: MovementImporter,
    path: Path | str,
    catalog: CatalogSnapshot,
) -> Future[int]:
    """Run an import in the background; listeners are called from the worker thread."""
    return executor.submit(importer.run, path, catalog)
