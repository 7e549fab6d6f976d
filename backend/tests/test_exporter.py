"""
Tests for cleaned data export.
"""
import json
import pytest
from io import BytesIO
from openpyxl import load_workbook
from studio.services.exporter import EXCEL_SHEET_NAME, to_csv, to_excel_bytes, to_json

ROWS = [
    {"name": "Ann", "age": 31, "city": "Oslo"},
    {"name": "Bob", "age": 27, "city": "Rome, Lazio"},
]


@pytest.mark.unit
def test_to_csv():
    lines = to_csv(ROWS).splitlines()
    assert lines == ["name,age,city", "Ann,31,Oslo", 'Bob,27,"Rome, Lazio"']


@pytest.mark.unit
def test_to_csv_empty():
    assert to_csv([]) == ""


@pytest.mark.unit
def test_to_excel_bytes():
    wb = load_workbook(BytesIO(to_excel_bytes(ROWS)))
    assert wb.sheetnames == [EXCEL_SHEET_NAME]
    values = list(wb[EXCEL_SHEET_NAME].values)
    assert values[0] == ("name", "age", "city")
    assert values[1] == ("Ann", 31, "Oslo")


@pytest.mark.unit
def test_to_json():
    text = to_json(ROWS)
    assert json.loads(text) == ROWS
    assert "\n  " in text
