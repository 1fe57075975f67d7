"""Rendering package — spreadsheet output."""

from .workbook import (
    OTHER_LABEL,
    PLACEHOLDER,
    DataSheet,
    RenderError,
    Section,
    SummarySheet,
    TableBlock,
    collapse_to_other,
    render,
    report_path,
)

__all__ = [
    "OTHER_LABEL",
    "PLACEHOLDER",
    "DataSheet",
    "RenderError",
    "Section",
    "SummarySheet",
    "TableBlock",
    "collapse_to_other",
    "render",
    "report_path",
]
