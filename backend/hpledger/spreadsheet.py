# Overview: CSV/XLSX reading and XLSX writing for bulk import and export.

"""
Spreadsheet I/O

Reading: CSV (UTF-8, optional BOM) or Excel (.xlsx). For workbooks the first
sheet that is not the "Import Template" sheet holds the data. The first row
is the header; every following non-blank row becomes a dict keyed by header.

Writing: a list of sheets, each with a title, headers, rows and optional
column widths, rendered into an .xlsx payload.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterable

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .errors import ValidationError

TEMPLATE_SHEET_TITLE = "Import Template"
EXCEL_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


@dataclass
class SheetSpec:
    title: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    widths: list[int] | None = None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _rows_from_matrix(matrix: list[tuple]) -> list[dict[str, Any]]:
    if not matrix:
        return []
    headers = [str(h).strip() if h is not None else "" for h in matrix[0]]
    rows = []
    for raw in matrix[1:]:
        if all(_is_blank(v) for v in raw):
            continue
        rows.append({
            headers[i]: raw[i] if i < len(raw) else None
            for i in range(len(headers))
            if headers[i]
        })
    return rows


def read_rows(stream: BinaryIO | bytes, filename: str) -> list[dict[str, Any]]:
    """Parse an uploaded file into header-keyed row dicts."""
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    data = stream if isinstance(stream, bytes) else stream.read()

    if ext == "csv":
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV files must be UTF-8 encoded", field="file")
        reader = csv.reader(io.StringIO(text))
        return _rows_from_matrix([tuple(r) for r in reader])

    if ext in EXCEL_EXTENSIONS:
        try:
            wb = load_workbook(io.BytesIO(data), data_only=True, read_only=True)
        except Exception as exc:  # noqa: BLE001
            raise ValidationError(f"Could not read workbook: {exc}", field="file")
        try:
            sheet = next(
                (ws for ws in wb.worksheets if ws.title != TEMPLATE_SHEET_TITLE),
                None,
            )
            if sheet is None:
                return []
            return _rows_from_matrix(list(sheet.iter_rows(values_only=True)))
        finally:
            wb.close()

    raise ValidationError("Unsupported file format; upload .csv or .xlsx", field="file")


def build_workbook(sheets: Iterable[SheetSpec]) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    bold = Font(bold=True)

    for sheet in sheets:
        ws = wb.create_sheet(title=sheet.title[:31])
        ws.append(list(sheet.headers))
        for cell in ws[1]:
            cell.font = bold
        for row in sheet.rows:
            ws.append(list(row))
        for index, header in enumerate(sheet.headers, start=1):
            width = sheet.widths[index - 1] if sheet.widths and index - 1 < len(sheet.widths) else max(12, len(str(header)) + 2)
            ws.column_dimensions[get_column_letter(index)].width = width
        ws.freeze_panes = "A2"

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()
