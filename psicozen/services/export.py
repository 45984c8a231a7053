"""
Export rendering: flat records to CSV, Excel or JSON.

Stateless. Business rules (which rows, which columns, masking) belong to
the caller; this module only serializes.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

logger = logging.getLogger(__name__)

LEVEL_COLUMN = "Nível Emocional"

HEADER_FILL = PatternFill(start_color="4CAF50", end_color="4CAF50", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
HIGH_LEVEL_FILL = PatternFill(start_color="FFCDD2", end_color="FFCDD2", fill_type="solid")
LOW_LEVEL_FILL = PatternFill(start_color="C8E6C9", end_color="C8E6C9", fill_type="solid")


class ExportFormat(str, Enum):
    CSV = "csv"
    EXCEL = "excel"
    JSON = "json"


@dataclass
class ExportResult:
    content: bytes
    media_type: str
    filename: str


MEDIA_TYPES: dict[ExportFormat, str] = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.JSON: "application/json",
}

EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.CSV: "csv",
    ExportFormat.EXCEL: "xlsx",
    ExportFormat.JSON: "json",
}


def export_filename(fmt: ExportFormat, today: date | None = None) -> str:
    today = today or date.today()
    return f"emociograma_{today.isoformat()}.{EXTENSIONS[fmt]}"


def generate_export(
    records: Sequence[dict[str, Any]],
    fmt: ExportFormat | str,
    columns: Sequence[str] | None = None,
) -> ExportResult:
    """Render ``records`` in the requested format."""
    fmt = ExportFormat(fmt)
    columns = list(columns or (records[0].keys() if records else []))

    if fmt is ExportFormat.CSV:
        content = to_csv(records, columns)
    elif fmt is ExportFormat.EXCEL:
        content = to_excel(records, columns)
    else:
        content = to_json(records)

    logger.info(f"Exported {len(records)} records as {fmt.value}")
    return ExportResult(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        filename=export_filename(fmt),
    )


def to_csv(records: Sequence[dict[str, Any]], columns: Sequence[str]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(records)
    # BOM so spreadsheet apps pick up UTF-8 accents
    return buffer.getvalue().encode("utf-8-sig")


def to_json(records: Sequence[dict[str, Any]]) -> bytes:
    return json.dumps(list(records), ensure_ascii=False, indent=2, default=str).encode("utf-8")


def to_excel(records: Sequence[dict[str, Any]], columns: Sequence[str]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Emociograma"

    sheet.append(list(columns))
    for cell in sheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")

    level_index = columns.index(LEVEL_COLUMN) if LEVEL_COLUMN in columns else None

    for record in records:
        sheet.append([record.get(column) for column in columns])
        if level_index is None:
            continue

        level = record.get(LEVEL_COLUMN)
        fill = None
        if isinstance(level, int):
            if level >= 6:
                fill = HIGH_LEVEL_FILL
            elif level <= 3:
                fill = LOW_LEVEL_FILL
        if fill is not None:
            for cell in sheet[sheet.max_row]:
                cell.fill = fill

    for index, column in enumerate(columns, start=1):
        width = max(
            [len(str(column))] + [len(str(r.get(column) or "")) for r in records]
        )
        sheet.column_dimensions[sheet.cell(row=1, column=index).column_letter].width = min(width + 2, 60)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
