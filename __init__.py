"""
Sheet Import Service

This package provides an API that validates uploaded Excel workbooks against
configurable sheet schemas, imports the valid rows into a database and
exports sheet data back to .xlsx.

Key modules:
- main.py: FastAPI application with API endpoints
- sheet_config.py: Sheet schemas, validation rules and the schema registry
- row_rules.py: Row validation and column mapping
- sheet_process.py: Per-sheet orchestration and the import filter
- workbook_io.py: Reading uploaded workbooks and writing exports
- record_store.py: Persistence of imported rows
- workbook_process.py: Upload, import and export pipelines
- utils/result.py: Result pattern implementation for error handling
"""
