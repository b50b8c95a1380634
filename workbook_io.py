"""
Workbook reading and writing.

Uploaded bytes are parsed with openpyxl so every data row keeps its real
worksheet row number; exports are written through pandas.
"""
import io
import logging
import zipfile
from typing import Any, Dict, List, Mapping, Optional, Sequence

import openpyxl
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from sheet_config import HEADER_ROW_NUMBER
from sheet_process import DataRow, ParsedSheet

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FILENAME = "validated_data.xlsx"
EMPTY_SHEET_PLACEHOLDER = "No data"


class WorkbookReadError(Exception):
    """Raised when uploaded bytes cannot be opened as a workbook."""


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def read_workbook(content: bytes) -> List[ParsedSheet]:
    """
    Parse workbook bytes into header and numbered data rows per sheet.

    Args:
        content: Raw .xlsx bytes

    Returns:
        List[ParsedSheet]: One entry per worksheet, in workbook order. Rows
            with no values are skipped; row numbers are 1-based.

    Raises:
        WorkbookReadError: If the bytes are not a readable workbook
    """
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        logger.error("Failed to open workbook", extra={"error": str(e), "error_type": type(e).__name__})
        raise WorkbookReadError(f"Failed to read Excel file: {e}") from e

    sheets: List[ParsedSheet] = []
    try:
        for worksheet in workbook.worksheets:
            header: Dict[int, str] = {}
            rows: List[DataRow] = []
            for row_number, values in enumerate(worksheet.iter_rows(values_only=True), start=1):
                if row_number == HEADER_ROW_NUMBER:
                    header = {idx: str(v) for idx, v in enumerate(values) if not _is_blank(v)}
                    continue
                cells = {idx: v for idx, v in enumerate(values) if v is not None}
                if all(_is_blank(v) for v in cells.values()):
                    continue
                rows.append(DataRow(row_number=row_number, cells=cells))
            sheets.append(ParsedSheet(name=worksheet.title, header=header, rows=rows))
    finally:
        workbook.close()

    logger.info(
        "Read workbook",
        extra={"sheet_count": len(sheets), "row_count": sum(len(s.rows) for s in sheets)}
    )
    return sheets


def _sheet_frame(rows: Optional[Sequence[Mapping[str, Any]]]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame([[EMPTY_SHEET_PLACEHOLDER]])
    headers = list(rows[0].keys())
    return pd.DataFrame([[row.get(h) for h in headers] for row in rows], columns=headers)


def write_workbook(
    sheet_data: Mapping[str, Optional[Sequence[Mapping[str, Any]]]],
    sheet_names: Sequence[str],
) -> bytes:
    """
    Write one worksheet per name, headed by the keys of the sheet's first row.

    Args:
        sheet_data: Sheet name -> row objects
        sheet_names: Sheets to write, in order

    Returns:
        bytes: The .xlsx workbook
    """
    names = list(dict.fromkeys(sheet_names)) or ["Sheet1"]
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name in names:
            rows = sheet_data.get(name)
            frame = _sheet_frame(rows)
            frame.to_excel(writer, sheet_name=name, index=False, header=bool(rows))
    logger.info("Wrote workbook", extra={"sheet_count": len(names)})
    return buffer.getvalue()
