"""
Pytest configuration file.

This file is automatically loaded by pytest and provides global test configuration.
It ensures the project's source directory is added to the Python path so that
modules can be imported properly during test execution, and points the app at
an in-memory database before main.py is imported.
"""
import io
import os
import sys

import openpyxl
import pytest

# Add the current directory to the Python path
# This ensures imports work correctly when running tests
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

os.environ.setdefault("DATABASE_URL", "sqlite://")


@pytest.fixture
def make_workbook():
    """
    Fixture returning a builder for in-memory .xlsx files.

    The builder takes a mapping of sheet name -> list of rows (first row is
    the header) and returns the workbook bytes.
    """
    def _make(sheets):
        workbook = openpyxl.Workbook()
        workbook.remove(workbook.active)
        for name, rows in sheets.items():
            worksheet = workbook.create_sheet(title=name)
            for row in rows:
                worksheet.append(list(row))
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()
    return _make
