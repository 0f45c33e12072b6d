import csv
import io
import json
from datetime import datetime, timezone

import pytest
from openpyxl import load_workbook

from src.pipeline.export import COLUMNS, RecordExporter, parse_tsv, record_row, to_csv_text, to_tsv
from src.schemas import BusinessRecord


def _records():
    ts = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    return [
        BusinessRecord(
            name="Blue Door Bakery", category="Bakery", address="12 Main St, Springfield",
            phone="5551234567", website="https://bluedoor.example/", rating="4.5",
            review_count="1234", hours="Monday 7 AM-3 PM; Tuesday 7 AM-3 PM",
            place_id="ChIJN1t_tDeuEmsRUsoyG83frY4", emails="a@b.com, c@d.org",
            instagram="https://instagram.com/bluedoor", extracted_at=ts,
        ),
        BusinessRecord(name='Joe\'s "Best" Deli', address="1 Elm St\nUnit 2", extracted_at=ts),
    ]


def test_tsv_header_and_one_line_per_record():
    text = to_tsv(_records())
    lines = text.splitlines()
    assert lines[0].split("\t") == [header for header, _ in COLUMNS]
    assert len(lines) == 3
    assert all(len(line.split("\t")) == len(COLUMNS) for line in lines)


def test_tsv_round_trip():
    records = _records()
    parsed = parse_tsv(to_tsv(records))
    assert [r.to_storage() for r in parsed] == [r.to_storage() for r in records]
    assert parsed[1].address == "1 Elm St Unit 2"


def test_tsv_tabs_in_values_do_not_shift_columns():
    rec = BusinessRecord(name="Blue\tDoor", address="12 Main St")
    line = to_tsv([rec]).splitlines()[1]
    cells = line.split("\t")
    assert len(cells) == len(COLUMNS)
    assert cells[0] == "Blue Door"


def test_parse_tsv_empty():
    assert parse_tsv("") == []


def test_csv_quotes_every_value():
    text = to_csv_text(_records())
    lines = text.splitlines()
    assert lines[0].startswith('"Name","Category","Address"')
    assert lines[2].startswith('"') and lines[2].endswith('"')
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[2][0] == 'Joe\'s "Best" Deli'
    assert rows[1][8] == "a@b.com, c@d.org"
    assert len(rows) == 3


def test_record_row_formats_timestamp():
    row = record_row(_records()[0])
    assert row[-1] == "2024-05-01T10:00:00+00:00"


class TestRecordExporter:

    def test_to_csv_writes_file(self, tmp_path):
        exporter = RecordExporter(output_dir=tmp_path / "out")
        path = exporter.to_csv(_records())
        assert path.exists()
        assert path.name.startswith("gmaps_export_")
        assert path.suffix == ".csv"
        assert path.read_text(encoding="utf-8") == to_csv_text(_records())

    def test_to_json_uses_storage_shape(self, tmp_path):
        exporter = RecordExporter(output_dir=tmp_path)
        path = exporter.to_json(_records(), filename="records.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert path.name == "records.json"
        assert data[0]["reviewCount"] == "1234"
        assert data[0]["extractedAt"].startswith("2024-05-01T10:00:00")

    def test_empty_export_raises(self, tmp_path):
        exporter = RecordExporter(output_dir=tmp_path)
        with pytest.raises(ValueError):
            exporter.to_csv([])
        with pytest.raises(ValueError):
            exporter.to_json([])
        with pytest.raises(ValueError):
            exporter.to_xlsx([])

    def test_to_xlsx_writes_businesses_sheet(self, tmp_path):
        exporter = RecordExporter(output_dir=tmp_path)
        path = exporter.to_xlsx(_records())
        assert path.suffix == ".xlsx"
        assert path.name.startswith("gmaps_export_")

        wb = load_workbook(path)
        assert wb.sheetnames == ["Businesses"]
        rows = list(wb["Businesses"].iter_rows(values_only=True))
        assert list(rows[0]) == [header for header, _ in COLUMNS]
        assert len(rows) == 3
        assert rows[1][0] == "Blue Door Bakery"
        assert rows[1][6] == "1234"
        assert rows[2][2] == "1 Elm St Unit 2"
