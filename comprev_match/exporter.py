from __future__ import annotations

import io
from datetime import date
from typing import Any, Optional

import openpyxl
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from comprev_match.dataset import Dataset

WRITE_ONLY_THRESHOLD = 5_000
MAX_SHEET_TITLE = 31

PENSIONISTAS_SHEET = "Matches Pensionistas"
APOSENTADOS_SHEET = "Ausentes Aposentados"

OUTPUT_PREFIXES = {
    "pensionistas": "Resultado_Pensionistas",
    "aposentados": "Resultado_Aposentados_Ausentes",
}

HEADER_COLOR = "1565C0"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def output_filename(kind: str, day: Optional[date] = None) -> str:
    """Resultado_Pensionistas_2024-05-01.xlsx and friends."""
    try:
        prefix = OUTPUT_PREFIXES[kind]
    except KeyError:
        raise ValueError(f"Unknown export kind '{kind}'. Expected one of: {sorted(OUTPUT_PREFIXES)}")
    day = day or date.today()
    return f"{prefix}_{day.isoformat()}.xlsx"


def _header_font() -> Font:
    return Font(bold=True, color="FFFFFF")


def _header_fill(hex_color: str) -> PatternFill:
    return PatternFill("solid", fgColor=hex_color)


def _style_sheet(ws, col_widths: list[int], header_color: str) -> None:
    """Apply bold header, color, frozen row, and column widths."""
    fill = _header_fill(header_color)
    font = _header_font()
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list[Any]], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(val)) + 2))
    return widths


def _write_fast(wb: openpyxl.Workbook, dataset: Dataset, title: str) -> None:
    """Write-only path for large outputs."""
    ws = wb.create_sheet(title)
    for i in range(1, len(dataset.headers) + 1):
        ws.column_dimensions[get_column_letter(i)].width = 15
    if dataset.headers:
        header_cells = []
        for header in dataset.headers:
            cell = WriteOnlyCell(ws, value=header)
            cell.font = _header_font()
            cell.fill = _header_fill(HEADER_COLOR)
            header_cells.append(cell)
        ws.append(header_cells)
    for row in dataset.rows():
        ws.append(row)


def _write_standard(wb: openpyxl.Workbook, dataset: Dataset, title: str) -> None:
    ws = wb.active
    ws.title = title
    if not dataset.headers:
        return
    rows = [list(dataset.headers), *dataset.rows()]
    for row in rows:
        ws.append(row)
    _style_sheet(ws, _infer_col_widths(rows), HEADER_COLOR)


def export_dataset(dataset: Dataset, sheet_name: str) -> bytes:
    """
    Serialize a dataset into a one-sheet .xlsx and return the file bytes.

    Columns keep the dataset's order and cell values are written as they
    are; only the header row gets styling.
    """
    title = sheet_name[:MAX_SHEET_TITLE]
    if len(dataset) >= WRITE_ONLY_THRESHOLD:
        wb = openpyxl.Workbook(write_only=True)
        _write_fast(wb, dataset, title)
    else:
        wb = openpyxl.Workbook()
        _write_standard(wb, dataset, title)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def result_exports(result, day: Optional[date] = None) -> list[tuple[str, bytes]]:
    """(file name, xlsx bytes) for every export a ComparisonResult produced."""
    exports = []
    if result.pensionistas_matches is not None:
        exports.append(
            (
                output_filename("pensionistas", day),
                export_dataset(result.pensionistas_matches, PENSIONISTAS_SHEET),
            )
        )
    if result.aposentados_missing is not None:
        exports.append(
            (
                output_filename("aposentados", day),
                export_dataset(result.aposentados_missing, APOSENTADOS_SHEET),
            )
        )
    return exports
