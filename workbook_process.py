import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from record_store import PersistenceError, RecordStore
from row_rules import ErrorDescriptor
from sheet_config import SchemaRegistry
from sheet_process import process_sheets, select_importable_rows
from utils.log_context import LogContext, new_request_id
from utils.result import Result
from workbook_io import WorkbookReadError, read_workbook, write_workbook

logger = logging.getLogger(__name__)

SheetRows = Dict[str, Optional[List[Dict[str, Any]]]]


class UploadResponse(BaseModel):
    """
    Parsed, validated and mapped contents of an uploaded workbook.

    Attributes:
        sheet_names: Every sheet in workbook order
        sheet_data: Mapped rows per processed sheet, including rows with errors
        validation_errors: Errors per sheet; sheets without errors are absent
    """
    model_config = ConfigDict(populate_by_name=True)

    sheet_names: List[str] = Field(alias="sheetNames")
    sheet_data: Dict[str, List[Dict[str, Any]]] = Field(alias="sheetData")
    validation_errors: Dict[str, List[ErrorDescriptor]] = Field(alias="validationErrors")


class ImportRequest(BaseModel):
    """
    Rows to import, as returned by the upload endpoint.

    ``data`` takes precedence; ``sheetData`` is accepted so an upload
    response can be posted back unchanged.
    """
    model_config = ConfigDict(populate_by_name=True)

    data: Optional[SheetRows] = None
    sheet_data: Optional[SheetRows] = Field(default=None, alias="sheetData")
    errors: Optional[Dict[str, Optional[List[Dict[str, Any]]]]] = None

    @property
    def rows_by_sheet(self) -> Optional[SheetRows]:
        return self.data if self.data is not None else self.sheet_data


class ImportResponse(BaseModel):
    message: str
    imported: int


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sheet_data: Optional[SheetRows] = Field(default=None, alias="sheetData")
    sheet_names: Optional[List[str]] = Field(default=None, alias="sheetNames")


class WorkbookProcessor:
    """
    Request-level pipelines behind the upload, import and export endpoints.

    Each pipeline returns a Result: input problems become 4xx failures,
    anything unexpected is logged and becomes a generic 500 failure.
    """

    @staticmethod
    def process_upload(
        content: Optional[bytes],
        registry: SchemaRegistry,
        max_upload_bytes: int,
        now: Optional[datetime] = None,
    ) -> Result[UploadResponse]:
        """
        Parse an uploaded workbook and validate every sheet.

        Args:
            content: Uploaded file bytes, or None when no file was sent
            registry: Schemas to resolve per sheet
            max_upload_bytes: Size limit for the upload
            now: Evaluation instant for current-month checks

        Returns:
            Result[UploadResponse]: Sheet names, mapped rows and validation errors
        """
        if content is None:
            logger.warning("Upload request without a file")
            return Result.invalid_input("No file uploaded.")

        log_context = {"request_id": new_request_id(), "size_bytes": len(content)}
        logger.info("Processing uploaded workbook", extra=log_context)

        if len(content) > max_upload_bytes:
            logger.warning("Upload exceeds size limit", extra={**log_context, "limit_bytes": max_upload_bytes})
            return Result.payload_too_large(f"File too large. Maximum size is {max_upload_bytes} bytes.")

        try:
            try:
                with LogContext("workbook read", **log_context):
                    sheets = read_workbook(content)
            except WorkbookReadError as e:
                return Result.invalid_input(str(e))

            with LogContext("sheet validation", **log_context, sheet_count=len(sheets)):
                processed = process_sheets(sheets, registry, now=now)

            logger.info(
                f"Validated {len(processed.sheet_names)} sheets with {processed.error_count} errors",
                extra=log_context
            )
            return Result.ok(UploadResponse(
                sheet_names=processed.sheet_names,
                sheet_data=processed.sheet_data,
                validation_errors=processed.validation_errors,
            ))
        except Exception as e:
            logger.exception("Unexpected error during file processing", extra={**log_context, "error": str(e)})
            return Result.server_error("Error processing file.")

    @staticmethod
    def import_rows(request: ImportRequest, store: RecordStore, registry: SchemaRegistry) -> Result[ImportResponse]:
        """
        Store the rows that passed validation, one batch per sheet.

        A failed batch stops the import; batches stored before it are kept.

        Args:
            request: Mapped rows and the validation errors reported for them
            store: Persistence port receiving each sheet's batch
            registry: Schemas giving each sheet's key field

        Returns:
            Result[ImportResponse]: Message with the number of stored records
        """
        rows_by_sheet = request.rows_by_sheet
        if rows_by_sheet is None:
            logger.warning("Import request without data")
            return Result.invalid_input("No data provided for import.")

        errors = request.errors or {}
        log_context = {"request_id": new_request_id(), "sheet_count": len(rows_by_sheet)}
        imported = 0
        try:
            with LogContext("record import", **log_context):
                for sheet_name, rows in rows_by_sheet.items():
                    if not rows:
                        continue
                    key_field = registry.resolve(sheet_name).key_field
                    importable = select_importable_rows(rows, errors.get(sheet_name) or [], key_field)
                    logger.info(
                        f"Sheet '{sheet_name}': {len(importable)} of {len(rows)} rows importable",
                        extra=log_context
                    )
                    if importable:
                        imported += store.insert_many(importable)
        except PersistenceError as e:
            logger.error(
                "Import aborted by a failed batch",
                extra={**log_context, "imported_before_failure": imported, "error": str(e)}
            )
            return Result.server_error("Error importing data.")
        except Exception as e:
            logger.exception("Unexpected error during import", extra={**log_context, "error": str(e)})
            return Result.server_error("Error importing data.")

        return Result.ok(ImportResponse(message=f"Successfully imported {imported} records.", imported=imported))

    @staticmethod
    def export_workbook(request: ExportRequest) -> Result[bytes]:
        """Write the posted sheet data back to an .xlsx workbook."""
        if request.sheet_data is None or request.sheet_names is None:
            logger.warning("Export request without data")
            return Result.invalid_input("No data provided for export.")

        log_context = {"request_id": new_request_id(), "sheet_count": len(request.sheet_names)}
        try:
            with LogContext("workbook export", **log_context):
                content = write_workbook(request.sheet_data, request.sheet_names)
        except Exception as e:
            logger.exception("Unexpected error during export", extra={**log_context, "error": str(e)})
            return Result.server_error("Error exporting data.")
        return Result.ok(content)
