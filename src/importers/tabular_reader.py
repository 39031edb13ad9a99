"""Spreadsheet decoding: workbook file -> header row plus rows of string cells."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from importers.errors import (
    EmptySpreadsheetError,
    InvalidSheetError,
    InvalidWorkbookError,
    MissingColumnsError,
    SpreadsheetNotFoundError,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y"


@dataclass(frozen=True)
class Worksheet:
    header_row: list[str]
    rows: list[list[str]] = field(default_factory=list)

    def validate_headers(self, required: Iterable[str]) -> None:
        missing = [column for column in required if column not in self.header_row]
        if missing:
            raise MissingColumnsError(missing, self.header_row)

    def column_index(self, header: str) -> int | None:
        try:
            return self.header_row.index(header)
        except ValueError:
            return None


class TabularReader(Protocol):
    def read(self, path: Path | str) -> Worksheet:
        ...


def cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        # repr() of a float is its shortest round-tripping text, e.g. 0.1 -> "0.1".
        return format(Decimal(repr(value)), "f")
    if isinstance(value, (int, Decimal)):
        return format(Decimal(value), "f")
    return str(value).strip()


def _as_text_row(values: Sequence[Any]) -> list[str]:
    return [cell_to_text(value) for value in values]


class XlsxReader:
    """Reads the first sheet of an .xlsx workbook; the first row is the header."""

    def read(self, path: Path | str) -> Worksheet:
        path = Path(path)
        if not path.is_file():
            raise SpreadsheetNotFoundError(path)

        try:
            workbook = load_workbook(path, read_only=True, data_only=True)
        except (InvalidFileException, BadZipFile, KeyError, OSError) as err:
            raise InvalidWorkbookError(path, str(err)) from err

        try:
            if not workbook.sheetnames:
                raise InvalidSheetError(path)
            sheet = workbook[workbook.sheetnames[0]]
            raw_rows = [list(values) for values in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

        if not raw_rows:
            raise EmptySpreadsheetError(path)

        header_row = _as_text_row(raw_rows[0])
        while header_row and header_row[-1] == "":
            header_row.pop()
        if not header_row:
            raise EmptySpreadsheetError(path)

        rows = [_as_text_row(values) for values in raw_rows[1:]]
        logger.info("Decoded %s: %d columns, %d data rows", path.name, len(header_row), len(rows))
        return Worksheet(header_row=header_row, rows=rows)
