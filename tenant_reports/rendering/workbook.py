"""
Workbook renderer — writes a dashboard sheet and tabular data sheets to one .xlsx file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from ..models import FrequencyEntry, FrequencyTable

logger = logging.getLogger("tenant_reports.rendering")

OTHER_LABEL = "Other"
PLACEHOLDER = "N/A"

MAX_SHEET_NAME = 31
_INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill("solid", fgColor="1F4E79")
TITLE_FONT = Font(bold=True, size=14)
BLOCK_TITLE_FONT = Font(bold=True, size=11)


class RenderError(Exception):
    """Raised when the workbook cannot be written."""
    pass


def collapse_to_other(table: FrequencyTable, budget: int) -> FrequencyTable:
    """
    Fit a frequency table into `budget` rows.
    Tables that already fit are returned unchanged; otherwise the top budget-1
    entries are kept and the rest fold into a single "Other" row.
    """
    if budget < 1:
        raise ValueError(f"Row budget must be at least 1, got {budget}")
    if len(table) <= budget:
        return tuple(table)
    kept = tuple(table[:budget - 1])
    folded = sum(entry.count for entry in table[budget - 1:])
    return kept + (FrequencyEntry(OTHER_LABEL, folded),)


@dataclass
class TableBlock:
    """One frequency table on the dashboard."""
    title: str
    table: FrequencyTable
    row_budget: Optional[int] = None
    headers: tuple[str, str] = ("Value", "Count")

    def rows(self) -> list[tuple[str, int]]:
        table = self.table
        if self.row_budget is not None:
            table = collapse_to_other(table, self.row_budget)
        if not table:
            return [(PLACEHOLDER, 0)]
        return [(entry.label, entry.count) for entry in table]


@dataclass
class SummarySheet:
    """Dashboard: a title, KPI label/value pairs and side-by-side tables."""
    name: str
    title: str
    kpis: list[tuple[str, Any]] = field(default_factory=list)
    tables: list[TableBlock] = field(default_factory=list)


@dataclass
class DataSheet:
    """A header row plus one row per record; empty sheets get a placeholder row."""
    name: str
    columns: Sequence[str]
    rows: Sequence[dict[str, Any]] = ()

    def body(self) -> list[list[Any]]:
        if not self.rows:
            return [[PLACEHOLDER] * len(self.columns)]
        return [[row.get(column) for column in self.columns] for row in self.rows]


Section = Union[SummarySheet, DataSheet]


def sheet_title(name: str, taken: set[str]) -> str:
    """Excel-safe, unique (case-insensitive) sheet name."""
    base = _INVALID_SHEET_CHARS.sub("-", name).strip("'").strip() or "Sheet"
    base = base[:MAX_SHEET_NAME]
    candidate = base
    suffix = 2
    while candidate.lower() in taken:
        tail = f" ({suffix})"
        candidate = base[:MAX_SHEET_NAME - len(tail)] + tail
        suffix += 1
    taken.add(candidate.lower())
    return candidate


def report_path(output_dir: Path, prefix: str, run_id: str) -> Path:
    return Path(output_dir) / f"{prefix}_{run_id}.xlsx"


def _cell_value(value: Any) -> Any:
    # Excel cannot store timezone-aware datetimes
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _write_cell(ws, row: int, col: int, value: Any):
    cell = ws.cell(row=row, column=col, value=_cell_value(value))
    # Tenant text starting with "=" must stay text, not become a live formula
    if cell.data_type == "f":
        cell.data_type = "s"
    return cell


def _write_header(ws, row: int, col: int, headers: Sequence[str]):
    for offset, header in enumerate(headers):
        cell = ws.cell(row=row, column=col + offset, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL


def _write_summary(ws, sheet: SummarySheet):
    _write_cell(ws, 1, 1, sheet.title).font = TITLE_FONT

    row = 3
    for label, value in sheet.kpis:
        _write_cell(ws, row, 1, label).font = Font(bold=True)
        _write_cell(ws, row, 2, value)
        row += 1

    # Tables sit side by side: two columns each plus a spacer
    top = row + 1
    for index, block in enumerate(sheet.tables):
        col = 1 + index * 3
        _write_cell(ws, top, col, block.title).font = BLOCK_TITLE_FONT
        _write_header(ws, top + 1, col, block.headers)
        for offset, (label, count) in enumerate(block.rows(), start=top + 2):
            _write_cell(ws, offset, col, label)
            _write_cell(ws, offset, col + 1, count)
        ws.column_dimensions[get_column_letter(col)].width = 28
        ws.column_dimensions[get_column_letter(col + 1)].width = 10

    ws.column_dimensions["A"].width = max(ws.column_dimensions["A"].width or 0, 32)


def _write_data(ws, sheet: DataSheet):
    _write_header(ws, 1, 1, sheet.columns)
    for row, values in enumerate(sheet.body(), start=2):
        for col, value in enumerate(values, start=1):
            _write_cell(ws, row, col, value)
    ws.freeze_panes = "A2"
    for index, column in enumerate(sheet.columns, start=1):
        ws.column_dimensions[get_column_letter(index)].width = max(12, min(len(column) + 4, 40))


def render(path: Path, sections: Sequence[Section]) -> Path:
    """
    Write every section to a new workbook at `path`.
    Creates the parent directory, never overwrites, raises RenderError on I/O failure.
    """
    path = Path(path)
    if not sections:
        raise RenderError("Nothing to render: no sections given")
    if path.exists():
        raise RenderError(f"Refusing to overwrite existing report: {path}")

    wb = Workbook()
    wb.remove(wb.active)
    taken: set[str] = set()
    for section in sections:
        ws = wb.create_sheet(title=sheet_title(section.name, taken))
        if isinstance(section, SummarySheet):
            _write_summary(ws, section)
        else:
            _write_data(ws, section)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(path)
    except OSError as e:
        raise RenderError(f"Failed to write {path}: {e}") from e

    logger.info(f"Wrote {len(sections)} sheets to {path}")
    return path
