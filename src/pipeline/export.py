"""
Export Pipeline - clipboard TSV, CSV, JSON and XLSX output

Pure serialisations of RecordStore.all(). Stored records are already
newline-free, so every format stays one line per business.

Key Features:
- Tab-delimited text for pasting into Google Sheets / Excel
- CSV with every value quoted
- JSON with camelCase keys (same shape as persisted records)
- XLSX workbook with a single "Businesses" sheet (openpyxl)
"""

import csv
import io
import json
from datetime import datetime as dt
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from openpyxl import Workbook

from ..schemas import BusinessRecord


# (column header, model field)
COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("Name", "name"),
    ("Category", "category"),
    ("Address", "address"),
    ("Phone", "phone"),
    ("Website", "website"),
    ("Rating", "rating"),
    ("Reviews", "review_count"),
    ("Hours", "hours"),
    ("Emails", "emails"),
    ("Web Phones", "web_phones"),
    ("Facebook", "facebook"),
    ("Instagram", "instagram"),
    ("LinkedIn", "linkedin"),
    ("Twitter", "twitter"),
    ("WhatsApp", "whatsapp"),
    ("Telegram", "telegram"),
    ("Place ID", "place_id"),
    ("Source URL", "source_url"),
    ("Extracted At", "extracted_at"),
)


def _cell(record: BusinessRecord, field_name: str) -> str:
    value = getattr(record, field_name)
    if isinstance(value, dt):
        return value.isoformat()
    return str(value or "")


def record_row(record: BusinessRecord) -> List[str]:
    return [_cell(record, field_name) for _, field_name in COLUMNS]


def to_tsv(records: Iterable[BusinessRecord]) -> str:
    """Tab-delimited clipboard text with a header row."""
    lines = ["\t".join(header for header, _ in COLUMNS)]
    for record in records:
        # Tabs inside values would shift every following column
        lines.append("\t".join(cell.replace("\t", " ") for cell in record_row(record)))
    return "\n".join(lines) + "\n"


def parse_tsv(text: str) -> List[BusinessRecord]:
    """Read text produced by to_tsv back into records."""
    rows = [line for line in (text or "").splitlines() if line]
    if not rows:
        return []
    headers = rows[0].split("\t")
    by_header = dict(COLUMNS)
    out: List[BusinessRecord] = []
    for line in rows[1:]:
        cells = line.split("\t")
        data = {}
        for header, cell in zip(headers, cells):
            field_name = by_header.get(header)
            if field_name is None:
                continue
            if field_name == "extracted_at" and not cell:
                continue
            data[field_name] = cell
        out.append(BusinessRecord.model_validate(data))
    return out


def to_csv_text(records: Iterable[BusinessRecord]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([header for header, _ in COLUMNS])
    for record in records:
        writer.writerow(record_row(record))
    return buf.getvalue()


class RecordExporter:
    """
    Writes business records to CSV/JSON/XLSX files in an output directory.
    """

    def __init__(self, output_dir: Union[str, Path] = "output"):
        """
        Initialize Record Exporter.

        Args:
            output_dir: Directory for output files (created if doesn't exist)
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, filename: Optional[str], ext: str) -> Path:
        if filename is None:
            timestamp = dt.now().strftime("%Y%m%d_%H%M%S")
            filename = f"gmaps_export_{timestamp}.{ext}"
        return self.output_dir / filename

    def to_csv(self, records: Sequence[BusinessRecord], filename: Optional[str] = None) -> Path:
        if not records:
            raise ValueError("No records to export")
        csv_path = self._path(filename, "csv")
        with open(csv_path, 'w', newline='', encoding='utf-8') as csvfile:
            csvfile.write(to_csv_text(records))
        print(f"💾 CSV exported: {csv_path} ({len(records)} records)")
        return csv_path

    def to_json(self, records: Sequence[BusinessRecord], filename: Optional[str] = None, pretty: bool = True) -> Path:
        if not records:
            raise ValueError("No records to export")
        json_path = self._path(filename, "json")
        export_data = [record.to_storage() for record in records]
        with open(json_path, 'w', encoding='utf-8') as jsonfile:
            if pretty:
                json.dump(export_data, jsonfile, indent=2, ensure_ascii=False)
            else:
                json.dump(export_data, jsonfile, ensure_ascii=False)
        print(f"💾 JSON exported: {json_path} ({len(export_data)} records)")
        return json_path

    def to_xlsx(self, records: Sequence[BusinessRecord], filename: Optional[str] = None) -> Path:
        if not records:
            raise ValueError("No records to export")
        xlsx_path = self._path(filename, "xlsx")
        wb = Workbook()
        ws = wb.active
        ws.title = "Businesses"
        ws.append([header for header, _ in COLUMNS])
        for record in records:
            ws.append(record_row(record))
        ws.freeze_panes = "A2"
        wb.save(xlsx_path)
        print(f"💾 XLSX exported: {xlsx_path} ({len(records)} records)")
        return xlsx_path
