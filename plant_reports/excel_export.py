"""
Excel Export Module

Writes table rows to a single-sheet .xlsx workbook named `<name>_<YYYY-MM-DD>.xlsx`.
Nested job structures are flattened into dotted column names.
"""

from datetime import date
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
import logging

import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

SHEET_NAME = "Report"
HEADER_FILL = PatternFill(start_color="E9E3FF", end_color="E9E3FF", fill_type="solid")
MAX_COLUMN_WIDTH = 50


def export_file_name(file_name: str, on: Optional[date] = None) -> str:
    """
    Example:
        >>> export_file_name("wrap_schedule", date(2024, 1, 5))
        'wrap_schedule_2024-01-05.xlsx'
    """
    on = on or date.today()
    return f"{file_name}_{on.isoformat()}.xlsx"


def rows_to_dataframe(rows: List[Dict[str, Any]], columns: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """
    Flatten rows into a DataFrame.

    Args:
        rows: Row dicts, possibly nested
        columns: Optional {source_column: header} mapping that selects, orders
            and renames the exported columns; missing sources become blank

    Returns:
        DataFrame ready for export
    """
    df = pd.json_normalize(rows) if rows else pd.DataFrame()

    if columns:
        df = df.reindex(columns=list(columns.keys())).rename(columns=columns)

    return df


def export_to_excel(
    rows: List[Dict[str, Any]],
    file_name: str,
    columns: Optional[Dict[str, str]] = None
) -> Tuple[BytesIO, str]:
    """
    Export rows to an in-memory workbook.

    Args:
        rows: Row dicts as fetched or formatted
        file_name: Base name; today's date and .xlsx are appended
        columns: Optional {source_column: header} selection

    Returns:
        Tuple of (BytesIO with workbook bytes, download file name)
    """
    df = rows_to_dataframe(rows, columns)
    buffer = BytesIO()

    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        ws = writer.sheets[SHEET_NAME]

        # Header styling and widths
        for idx, column in enumerate(df.columns, start=1):
            cell = ws.cell(row=1, column=idx)
            cell.font = Font(bold=True)
            cell.fill = HEADER_FILL

            values = [str(column)] + [str(v) for v in df[column].tolist() if v is not None]
            width = min(max(len(v) for v in values) + 2, MAX_COLUMN_WIDTH)
            ws.column_dimensions[get_column_letter(idx)].width = width

        ws.freeze_panes = "A2"

    buffer.seek(0)
    name = export_file_name(file_name)
    logger.info(f"Exported {len(df)} rows to {name}")
    return buffer, name
