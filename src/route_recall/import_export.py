"""Import and export of street tables.

Supports:
- Reading .xlsx (first sheet) and .csv files into import entries
- Writing the library back out as .xlsx or .csv

Headers use the Chinese column names of the backup sheet; the English
field names are accepted on import as well.
"""

from __future__ import annotations

import csv
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Iterator
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from route_recall.errors import ErrorContext, ImportFormatError
from route_recall.library import ImportEntry, MergeSummary, RecordLibrary
from route_recall.logging import (
    LogContext,
    get_logger,
    log_operation_complete,
    log_operation_start,
)
from route_recall.models.record import AddressRecord

logger = get_logger(__name__)

COL_STREET = "道路名称"
COL_AREA = "所属路区"
COL_COMPANY = "公司名称"
COL_PINYIN = "拼音"
COL_FAILURES = "错误次数"
COL_CREATED = "创建时间"

EXPORT_COLUMNS = (COL_STREET, COL_AREA, COL_COMPANY, COL_PINYIN, COL_FAILURES, COL_CREATED)
EXPORT_SHEET_TITLE = "路区数据"

# Header text -> ImportEntry field
HEADER_ALIASES: dict[str, str] = {
    COL_STREET: "street_name",
    "streetName": "street_name",
    "street_name": "street_name",
    COL_AREA: "route_area",
    "routeArea": "route_area",
    "route_area": "route_area",
    COL_COMPANY: "company_name",
    "companyName": "company_name",
    "company_name": "company_name",
    COL_PINYIN: "pinyin",
    "pinyin": "pinyin",
}

SUPPORTED_SUFFIXES = (".xlsx", ".csv")


def default_export_filename(today: date | None = None) -> str:
    """Backup file name stamped with the date."""
    today = today or date.today()
    return f"路区题库备份_{today.isoformat()}.xlsx"


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _map_header(header: Iterable[Any]) -> dict[int, str]:
    """Map column positions to entry fields.

    Raises:
        ImportFormatError: If the street or zone column is missing
    """
    columns: dict[int, str] = {}
    for position, cell in enumerate(header):
        field_name = HEADER_ALIASES.get(_cell_text(cell))
        if field_name and field_name not in columns.values():
            columns[position] = field_name

    missing = {"street_name", "route_area"} - set(columns.values())
    if missing:
        raise ImportFormatError(
            f"Missing required columns: expected '{COL_STREET}' and '{COL_AREA}'",
            {"missing": sorted(missing)},
        )
    return columns


def _rows_to_entries(rows: Iterator[tuple[Any, ...]]) -> list[ImportEntry]:
    header = next(rows, None)
    if header is None:
        raise ImportFormatError("File is empty")

    columns = _map_header(header)
    entries = []
    for row in rows:
        values = {
            field_name: _cell_text(row[position]) if position < len(row) else ""
            for position, field_name in columns.items()
        }
        if not any(values.values()):
            continue
        entries.append(ImportEntry(**values))
    return entries


def _read_xlsx_rows(path: Path) -> Iterator[tuple[Any, ...]]:
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as e:
        raise ImportFormatError(f"Cannot read workbook {path.name}: {e}", {"path": str(path)}) from e

    try:
        sheet = workbook.worksheets[0]
        # Materialize before the workbook is closed
        rows = [tuple(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
    return iter(rows)


def _read_csv_rows(path: Path) -> Iterator[tuple[Any, ...]]:
    try:
        with open(path, encoding="utf-8-sig", newline="") as f:
            rows = [tuple(row) for row in csv.reader(f)]
    except (UnicodeDecodeError, csv.Error) as e:
        raise ImportFormatError(f"Cannot read CSV {path.name}: {e}", {"path": str(path)}) from e
    return iter(rows)


def read_entries(path: Path | str) -> list[ImportEntry]:
    """Read import entries from an .xlsx or .csv file.

    Blank rows are dropped. Rows missing a street or zone are kept so the
    merge can count them as skipped.

    Raises:
        ImportFormatError: If the file is missing, unsupported, or has no
            street/zone columns
    """
    path = Path(path)
    if not path.exists():
        raise ImportFormatError(f"Import file not found: {path}", {"path": str(path)})

    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        rows = _read_xlsx_rows(path)
    elif suffix == ".csv":
        rows = _read_csv_rows(path)
    else:
        raise ImportFormatError(
            f"Unsupported file type: {path.suffix}",
            {"supported": list(SUPPORTED_SUFFIXES)},
        )

    entries = _rows_to_entries(rows)
    logger.debug("Read import file", extra={"path": str(path), "rows": len(entries)})
    return entries


def record_to_row(record: AddressRecord) -> list[Any]:
    """Convert a record to an export row in EXPORT_COLUMNS order."""
    created = datetime.fromtimestamp(record.created_at / 1000).date().isoformat()
    return [
        record.street_name,
        record.route_area,
        record.company_name,
        record.canonical_pinyin,
        record.failure_count,
        created,
    ]


def write_records(path: Path | str, records: Iterable[AddressRecord]) -> int:
    """Export records to an .xlsx or .csv file.

    Returns:
        Number of records written

    Raises:
        ImportFormatError: If the file type is unsupported
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ImportFormatError(
            f"Unsupported file type: {path.suffix}",
            {"supported": list(SUPPORTED_SUFFIXES)},
        )

    rows = [record_to_row(r) for r in records]
    path.parent.mkdir(parents=True, exist_ok=True)

    if suffix == ".xlsx":
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = EXPORT_SHEET_TITLE
        sheet.append(list(EXPORT_COLUMNS))
        for row in rows:
            sheet.append(row)
        workbook.save(path)
    else:
        with open(path, "w", encoding="utf-8-sig", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(EXPORT_COLUMNS)
            writer.writerows(rows)

    logger.info("Exported records", extra={"path": str(path), "rows": len(rows)})
    return len(rows)


def import_file(path: Path | str, library: RecordLibrary) -> MergeSummary:
    """Read a street table and upsert it into the library.

    Raises:
        ImportFormatError: If the file cannot be read
    """
    path = Path(path)
    started = time.monotonic()
    with LogContext(source=path.name):
        log_operation_start(logger, "import")
        with ErrorContext("import", context={"path": str(path)}):
            entries = read_entries(path)
            summary = library.merge(entries)
        if summary.skipped:
            logger.warning("Skipped rows without street or zone", extra={"skipped": summary.skipped})
        log_operation_complete(
            logger,
            "import",
            duration=time.monotonic() - started,
            added=summary.added,
            updated=summary.updated,
            skipped=summary.skipped,
        )
    return summary
