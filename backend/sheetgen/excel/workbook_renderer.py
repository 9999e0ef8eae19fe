"""
Deterministic rendering of validated spreadsheet schemas into openpyxl workbooks,
and serialization of those workbooks to xlsx or csv bytes.
"""

from __future__ import annotations

import csv
import io
import logging
import math
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Iterable, List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE, Cell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from sheetgen.env import SPREADSHEET_DOCUMENT_CREATOR, SRC_LOG_LEVELS

from .errors import RenderError, UnsupportedExportError
from .generation_spec import (
    ExportFormat,
    FormulaCell,
    SpreadsheetColumn,
    SpreadsheetSchema,
    SpreadsheetSheet,
    SpreadsheetTheme,
)

log = logging.getLogger(__name__)
log.setLevel(SRC_LOG_LEVELS["EXCEL"])

MAX_SHEET_NAME_LENGTH = 31
DEFAULT_COLUMN_WIDTH = 20
TITLE_ROW_HEIGHT = 40
HEADER_ROW_HEIGHT = 30
DATA_ROW_HEIGHT = 25

_INVALID_SHEET_NAME_CHARS = re.compile(r"[*?:\\/\[\]\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")
_HEX_DIGITS = re.compile(r"^[0-9A-Fa-f]+$")

CSV_INJECTION_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


@dataclass(frozen=True)
class ThemePalette:
    headerBg: str = "FF4F46E5"
    headerText: str = "FFFFFFFF"
    rowEvenBg: str = "FFF1F5F9"
    rowOddBg: str = "FFFFFFFF"
    borderColor: str = "FFE2E8F0"


@dataclass(frozen=True)
class NumberFormatTable:
    currency: str = '"R$ "#,##0.00'
    date: str = "dd/mm/yyyy"
    percentage: str = "0.00%"
    number: str = "#,##0.00"

    def for_column(self, column_format: Optional[str]) -> Optional[str]:
        if column_format in ("currency", "date", "percentage", "number"):
            return getattr(self, column_format)
        return None


DEFAULT_THEME_PALETTE = ThemePalette()
DEFAULT_NUMBER_FORMATS = NumberFormatTable()


@dataclass
class SpreadsheetDocument:
    workbook: Workbook
    sheet_names: Tuple[str, ...]


def normalize_color(color: Optional[str], fallback: str) -> str:
    """
    Return an 8-digit ARGB token: RRGGBB gets an opaque alpha prefix, AARRGGBB is
    kept, anything else is bounded to 8 characters.
    """
    if not color:
        return fallback
    value = color.strip().lstrip("#").upper()
    if not value:
        return fallback
    if len(value) == 6 and _HEX_DIGITS.match(value):
        return f"FF{value}"
    if len(value) == 8 and _HEX_DIGITS.match(value):
        return value
    return f"FF{value}"[:8].ljust(8, "F")


def resolve_theme(
    theme: Optional[SpreadsheetTheme], defaults: ThemePalette = DEFAULT_THEME_PALETTE
) -> ThemePalette:
    if theme is None:
        return defaults
    return ThemePalette(
        headerBg=normalize_color(theme.headerBg, defaults.headerBg),
        headerText=normalize_color(theme.headerText, defaults.headerText),
        rowEvenBg=normalize_color(theme.rowEvenBg, defaults.rowEvenBg),
        rowOddBg=normalize_color(theme.rowOddBg, defaults.rowOddBg),
        borderColor=normalize_color(theme.borderColor, defaults.borderColor),
    )


def sanitize_sheet_name(name: str, used_names: Iterable[str], position: int) -> str:
    """
    Make ``name`` a legal, unique worksheet title.

    Uniqueness is case-insensitive, as it is in Excel. ``position`` is the
    1-based sheet index used for the ``Sheet<n>`` placeholder.
    """
    used = {existing.lower() for existing in used_names}
    placeholder = f"Sheet{position}"

    base = _INVALID_SHEET_NAME_CHARS.sub("", _WHITESPACE.sub(" ", name or ""))
    base = _WHITESPACE.sub(" ", base).strip().strip("'").strip()
    base = base[:MAX_SHEET_NAME_LENGTH].rstrip()
    if not base:
        base = placeholder

    if base.lower() not in used:
        return base

    for counter in range(2, len(used) + 3):
        suffix = f" ({counter})"
        candidate = base[: MAX_SHEET_NAME_LENGTH - len(suffix)].rstrip() + suffix
        if candidate.lower() not in used:
            return candidate

    if placeholder.lower() not in used:
        return placeholder
    raise RenderError(f"Could not derive a unique sheet name for {name!r}")


def ensure_exportable(schema: SpreadsheetSchema, export_format: str) -> None:
    if export_format == "csv" and len(schema.sheets) != 1:
        raise UnsupportedExportError(export_format, len(schema.sheets))


@dataclass(frozen=True)
class _ColumnStyle:
    alignment: Alignment
    number_format: Optional[str]


class SpreadsheetRenderer:
    """
    Builds a styled workbook from a validated schema.

    Per sheet: theme, name, columns, optional title row, bulk row append,
    header styling, one data styling pass, then filter and frozen panes.
    """

    def __init__(
        self,
        number_formats: NumberFormatTable = DEFAULT_NUMBER_FORMATS,
        default_palette: ThemePalette = DEFAULT_THEME_PALETTE,
        creator: str = SPREADSHEET_DOCUMENT_CREATOR,
    ):
        self.number_formats = number_formats
        self.default_palette = default_palette
        self.creator = creator

    def render(self, schema: SpreadsheetSchema) -> SpreadsheetDocument:
        wb = Workbook()
        wb.remove(wb.active)
        wb.properties.creator = self.creator
        if schema.title:
            wb.properties.title = ILLEGAL_CHARACTERS_RE.sub("", schema.title)

        palette = resolve_theme(schema.theme, self.default_palette)
        sheet_names: List[str] = []
        for position, sheet in enumerate(schema.sheets, start=1):
            sheet_name = sanitize_sheet_name(sheet.name, sheet_names, position)
            sheet_names.append(sheet_name)
            ws = wb.create_sheet(title=sheet_name)
            try:
                self._write_sheet_content(ws, sheet=sheet, schema=schema, palette=palette)
            except IllegalCharacterError as e:
                raise RenderError(
                    f"Sheet '{sheet.name}' contains a value Excel cannot store: {e}"
                ) from e
            log.debug(
                f"Rendered sheet '{sheet_name}' ({len(sheet.columns)} columns, {len(sheet.rows)} rows)"
            )

        return SpreadsheetDocument(workbook=wb, sheet_names=tuple(sheet_names))

    def serialize(self, document: SpreadsheetDocument, export_format: ExportFormat) -> bytes:
        if export_format == "xlsx":
            buffer = BytesIO()
            document.workbook.save(buffer)
            return buffer.getvalue()

        if export_format == "csv":
            worksheets = document.workbook.worksheets
            if len(worksheets) != 1:
                raise UnsupportedExportError(export_format, len(worksheets))
            return self._worksheet_to_csv(worksheets[0])

        raise ValueError(f"Unsupported export format: {export_format}")

    def render_to_bytes(self, schema: SpreadsheetSchema, export_format: ExportFormat) -> bytes:
        ensure_exportable(schema, export_format)
        return self.serialize(self.render(schema), export_format)

    def _write_sheet_content(
        self,
        ws,
        sheet: SpreadsheetSheet,
        schema: SpreadsheetSchema,
        palette: ThemePalette,
    ):
        column_count = len(sheet.columns)
        last_col = get_column_letter(column_count)

        header_fill = PatternFill(
            fill_type="solid", start_color=palette.headerBg, end_color=palette.headerBg
        )
        thin_side = Side(style="thin", color=palette.borderColor)
        cell_border = Border(left=thin_side, right=thin_side, top=thin_side, bottom=thin_side)
        even_fill = PatternFill(
            fill_type="solid", start_color=palette.rowEvenBg, end_color=palette.rowEvenBg
        )
        odd_fill = PatternFill(
            fill_type="solid", start_color=palette.rowOddBg, end_color=palette.rowOddBg
        )
        centered = Alignment(horizontal="center", vertical="center")

        column_styles = []
        for idx, column in enumerate(sheet.columns, start=1):
            ws.column_dimensions[get_column_letter(idx)].width = column.width or DEFAULT_COLUMN_WIDTH
            column_styles.append(self._column_style(column))

        header_row = 1
        if sheet.showTitle:
            title_cell = ws.cell(row=1, column=1, value=schema.title or sheet.name)
            if column_count > 1:
                ws.merge_cells(f"A1:{last_col}1")
            title_cell.font = Font(bold=True, size=16, color=palette.headerText)
            title_cell.fill = header_fill
            title_cell.alignment = centered
            ws.row_dimensions[1].height = TITLE_ROW_HEIGHT
            header_row = 2

        for idx, column in enumerate(sheet.columns, start=1):
            ws.cell(row=header_row, column=idx, value=column.header)

        for row in sheet.rows:
            ws.append([self._cell_value(ws, row.get(column.key)) for column in sheet.columns])

        header_font = Font(bold=True, size=11, color=palette.headerText)
        for cell in ws[header_row][:column_count]:
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = centered
        ws.row_dimensions[header_row].height = HEADER_ROW_HEIGHT

        if sheet.rows:
            for row_cells in ws.iter_rows(
                min_row=header_row + 1,
                max_row=header_row + len(sheet.rows),
                max_col=column_count,
            ):
                row_idx = row_cells[0].row
                row_fill = even_fill if row_idx % 2 == 0 else odd_fill
                ws.row_dimensions[row_idx].height = DATA_ROW_HEIGHT
                for cell, style in zip(row_cells, column_styles):
                    cell.fill = row_fill
                    cell.border = cell_border
                    cell.alignment = style.alignment
                    if style.number_format:
                        cell.number_format = style.number_format

        if sheet.autoFilter:
            ws.auto_filter.ref = f"A{header_row}:{last_col}{header_row}"

        if sheet.freezePanes is not None:
            frozen_columns = sheet.freezePanes.x or 0
            ws.freeze_panes = f"{get_column_letter(frozen_columns + 1)}{header_row + 1}"

    def _column_style(self, column: SpreadsheetColumn) -> _ColumnStyle:
        return _ColumnStyle(
            alignment=Alignment(horizontal=column.alignment or "left", vertical="center"),
            number_format=self.number_formats.for_column(column.format),
        )

    def _cell_value(self, ws, value: Any) -> Any:
        if isinstance(value, FormulaCell):
            formula = value.formula.strip()
            return formula if formula.startswith("=") else f"={formula}"
        if isinstance(value, float) and not math.isfinite(value):
            raise RenderError(f"Non-finite number {value!r} reached the renderer")
        if isinstance(value, str) and value.startswith("="):
            # Literal text must never be promoted to a formula.
            cell = Cell(ws, value=value)
            cell.data_type = "s"
            return cell
        return value

    def _worksheet_to_csv(self, ws) -> bytes:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\r\n")
        for row in ws.iter_rows():
            writer.writerow([self._csv_value(cell) for cell in row])
        return output.getvalue().encode("utf-8-sig")

    def _csv_value(self, cell) -> Any:
        value = cell.value
        if value is None:
            return ""
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if cell.data_type == "f":
            return value
        if isinstance(value, str) and value.startswith(CSV_INJECTION_PREFIXES):
            return f"'{value}"
        return value

