"""Tests for spreadsheet import and export."""

import csv
from datetime import date

import pytest
from openpyxl import Workbook, load_workbook

from route_recall.errors import ImportFormatError
from route_recall.import_export import (
    EXPORT_COLUMNS,
    default_export_filename,
    import_file,
    read_entries,
    write_records,
)
from route_recall.library import RecordLibrary
from route_recall.models import AddressRecord
from route_recall.storage import InMemoryRecordStore


def write_xlsx(path, rows):
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    workbook.save(path)


def write_csv(path, rows):
    with open(path, "w", encoding="utf-8-sig", newline="") as f:
        csv.writer(f).writerows(rows)


class TestReadEntries:
    """Tests for read_entries."""

    def test_xlsx_chinese_headers(self, tmp_path):
        """Test reading the standard Chinese column names."""
        path = tmp_path / "streets.xlsx"
        write_xlsx(
            path,
            [
                ["道路名称", "所属路区", "公司名称", "拼音"],
                ["文三路", "西湖 1 区", "华星科技", "wensanlu"],
                ["延安路", "上城 1 区", None, None],
            ],
        )

        entries = read_entries(path)

        assert len(entries) == 2
        assert entries[0].street_name == "文三路"
        assert entries[0].company_name == "华星科技"
        assert entries[0].pinyin == "wensanlu"
        assert entries[1].company_name == ""

    def test_csv_english_headers(self, tmp_path):
        """Test reading English field names from a BOM-prefixed CSV."""
        path = tmp_path / "streets.csv"
        write_csv(path, [["routeArea", "streetName"], ["西湖 1 区", "文三路"]])

        entries = read_entries(path)

        assert entries[0].street_name == "文三路"
        assert entries[0].route_area == "西湖 1 区"

    def test_numeric_cells(self, tmp_path):
        """Test numeric cells become clean text."""
        path = tmp_path / "streets.xlsx"
        write_xlsx(path, [["道路名称", "所属路区"], ["文三路", 3]])

        assert read_entries(path)[0].route_area == "3"

    def test_blank_rows_dropped_incomplete_kept(self, tmp_path):
        """Test fully blank rows vanish but half-filled rows stay for counting."""
        path = tmp_path / "streets.csv"
        write_csv(path, [["道路名称", "所属路区"], ["", ""], ["文三路", ""]])

        entries = read_entries(path)

        assert len(entries) == 1
        assert entries[0].route_area == ""

    def test_missing_columns(self, tmp_path):
        """Test a file without the street/zone columns is rejected."""
        path = tmp_path / "streets.csv"
        write_csv(path, [["名称", "区域"], ["文三路", "西湖 1 区"]])

        with pytest.raises(ImportFormatError):
            read_entries(path)

    def test_empty_file(self, tmp_path):
        """Test an empty file is rejected."""
        path = tmp_path / "streets.csv"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ImportFormatError):
            read_entries(path)

    def test_unsupported_type(self, tmp_path):
        """Test unknown file types are rejected."""
        path = tmp_path / "streets.txt"
        path.write_text("x")

        with pytest.raises(ImportFormatError):
            read_entries(path)

    def test_missing_file(self, tmp_path):
        """Test a missing file is rejected."""
        with pytest.raises(ImportFormatError):
            read_entries(tmp_path / "nope.xlsx")

    def test_corrupt_workbook(self, tmp_path):
        """Test a non-zip .xlsx is rejected."""
        path = tmp_path / "streets.xlsx"
        path.write_bytes(b"not a workbook")

        with pytest.raises(ImportFormatError):
            read_entries(path)


class TestImportFile:
    """Tests for import_file."""

    def test_import_merges(self, tmp_path):
        """Test an import adds, updates and skips rows."""
        store = InMemoryRecordStore()
        library = RecordLibrary(store)
        library.add("文三路", "西湖 1 区")

        path = tmp_path / "streets.csv"
        write_csv(
            path,
            [
                ["道路名称", "所属路区"],
                ["文三路", "西湖 2 区"],
                ["延安路", "上城 1 区"],
                ["古墩路", ""],
            ],
        )

        summary = import_file(path, library)

        assert (summary.added, summary.updated, summary.skipped) == (1, 1, 1)
        assert sorted(r.route_area for r in store.get_all()) == sorted(["西湖 2 区", "上城 1 区"])


class TestWriteRecords:
    """Tests for write_records."""

    @pytest.fixture
    def records(self):
        return [
            AddressRecord(
                street_name="文三路",
                route_area="西湖 1 区",
                company_name="华星科技",
                canonical_pinyin="wensanlu",
                failure_count=2,
            )
        ]

    def test_xlsx(self, tmp_path, records):
        """Test exporting to a workbook."""
        path = tmp_path / "out.xlsx"

        assert write_records(path, records) == 1

        sheet = load_workbook(path).active
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0] == EXPORT_COLUMNS
        assert rows[1][:5] == ("文三路", "西湖 1 区", "华星科技", "wensanlu", 2)

    def test_csv(self, tmp_path, records):
        """Test exporting to CSV with a BOM for spreadsheet apps."""
        path = tmp_path / "out.csv"
        write_records(path, records)

        raw = path.read_bytes()
        assert raw.startswith(b"\xef\xbb\xbf")

        with open(path, encoding="utf-8-sig", newline="") as f:
            rows = list(csv.reader(f))
        assert tuple(rows[0]) == EXPORT_COLUMNS
        assert rows[1][0] == "文三路"

    def test_export_reimports(self, tmp_path, records):
        """Test an exported file can be imported again."""
        path = tmp_path / "out.xlsx"
        write_records(path, records)

        entries = read_entries(path)

        assert entries[0].street_name == "文三路"
        assert entries[0].pinyin == "wensanlu"

    def test_unsupported_type(self, tmp_path, records):
        """Test unknown output types are rejected."""
        with pytest.raises(ImportFormatError):
            write_records(tmp_path / "out.json", records)


def test_default_export_filename():
    """Test the backup file name carries the date."""
    assert default_export_filename(date(2024, 5, 1)) == "路区题库备份_2024-05-01.xlsx"
