"""
Sheet-level orchestration of row validation and mapping.

The processor works on already-parsed worksheets: a header row keyed by
column index plus numbered data rows. It never touches workbook bytes.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from row_rules import ErrorDescriptor, MappedRow, map_row, validate_row
from sheet_config import FIRST_DATA_ROW_NUMBER, HEADER_ROW_NUMBER, Schema, SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataRow:
    row_number: int  # 1-based worksheet row number
    cells: Dict[int, Any]  # column index -> cell value


@dataclass(frozen=True)
class ParsedSheet:
    name: str
    header: Dict[int, str]  # column index -> header text
    rows: List[DataRow] = field(default_factory=list)


@dataclass
class SheetResult:
    sheet_name: str
    rows: List[MappedRow] = field(default_factory=list)
    errors: List[ErrorDescriptor] = field(default_factory=list)
    processed: bool = True


@dataclass
class ProcessedWorkbook:
    sheet_names: List[str] = field(default_factory=list)
    sheet_data: Dict[str, List[MappedRow]] = field(default_factory=dict)
    validation_errors: Dict[str, List[ErrorDescriptor]] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(len(errors) for errors in self.validation_errors.values())


def missing_columns(header: Mapping[int, str], schema: Schema) -> List[str]:
    present = set(header.values())
    return [column for column in schema.required_columns if column not in present]


def process_sheet(sheet: ParsedSheet, schema: Schema, now: Optional[datetime] = None) -> SheetResult:
    """
    Validate and map every data row of one sheet.

    Rows with validation errors are still mapped and returned; filtering is
    left to the import step.

    Args:
        sheet: Parsed worksheet
        schema: Schema resolved for the sheet
        now: Evaluation instant for current-month checks

    Returns:
        SheetResult: Mapped rows and errors, or a single header error when
            required columns are missing
    """
    missing = missing_columns(sheet.header, schema)
    if missing:
        logger.warning(
            f"Sheet '{sheet.name}' is missing required columns",
            extra={"sheet": sheet.name, "missing_columns": missing}
        )
        return SheetResult(
            sheet_name=sheet.name,
            errors=[ErrorDescriptor(row=HEADER_ROW_NUMBER, error=f"Missing required columns: {', '.join(missing)}")],
            processed=False,
        )

    result = SheetResult(sheet_name=sheet.name)
    for data_row in sheet.rows:
        row = {sheet.header[idx]: value for idx, value in data_row.cells.items() if idx in sheet.header}
        result.errors.extend(validate_row(row, schema, data_row.row_number, now=now))
        result.rows.append(map_row(row, schema))

    logger.debug(
        f"Processed sheet '{sheet.name}'",
        extra={"sheet": sheet.name, "row_count": len(result.rows), "error_count": len(result.errors)}
    )
    return result


def process_sheets(
    sheets: Iterable[ParsedSheet],
    registry: SchemaRegistry,
    now: Optional[datetime] = None,
) -> ProcessedWorkbook:
    """
    Process every sheet in input order and aggregate the results.

    Sheets that were not processed get no ``sheet_data`` entry; sheets
    without errors get no ``validation_errors`` entry.
    """
    workbook = ProcessedWorkbook()
    for sheet in sheets:
        workbook.sheet_names.append(sheet.name)
        result = process_sheet(sheet, registry.resolve(sheet.name), now=now)
        if result.processed:
            workbook.sheet_data[sheet.name] = result.rows
        if result.errors:
            workbook.validation_errors[sheet.name] = result.errors
    return workbook


def select_importable_rows(
    rows: Sequence[Mapping[str, Any]],
    sheet_errors: Iterable[Any],
    key_field: str = "name",
) -> List[Mapping[str, Any]]:
    """
    Keep the rows of one sheet that have no recorded errors and a key value.

    The row at index ``i`` is worksheet row ``i + FIRST_DATA_ROW_NUMBER``,
    the same numbering the validator uses for its error descriptors.
    """
    error_rows = {_error_row(err) for err in sheet_errors}
    return [
        row for index, row in enumerate(rows)
        if index + FIRST_DATA_ROW_NUMBER not in error_rows and row.get(key_field)
    ]


def select_importable(
    data: Mapping[str, Optional[Sequence[Mapping[str, Any]]]],
    errors: Optional[Mapping[str, Iterable[Any]]] = None,
    key_field: str = "name",
) -> List[Mapping[str, Any]]:
    """Flatten the importable rows of every sheet, in sheet order."""
    errors = errors or {}
    importable: List[Mapping[str, Any]] = []
    for sheet_name, rows in data.items():
        if not rows:
            continue
        importable.extend(select_importable_rows(rows, errors.get(sheet_name) or [], key_field))
    return importable


def _error_row(err: Any) -> Any:
    if isinstance(err, Mapping):
        return err.get("row")
    return getattr(err, "row", None)
