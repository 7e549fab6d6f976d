"""
Serializers for the cleaned row set.
"""
import json
import pandas as pd
from io import BytesIO
from typing import Any, Dict, List

EXCEL_SHEET_NAME = "Cleaned Data"

EXPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "json": "application/json",
}


def to_csv(rows: List[Dict[str, Any]]) -> str:
    if not rows:
        return ""
    return pd.DataFrame(rows).to_csv(index=False)


def to_excel_bytes(rows: List[Dict[str, Any]]) -> bytes:
    """Single-sheet workbook named "Cleaned Data"."""
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=EXCEL_SHEET_NAME, index=False)
    return buffer.getvalue()


def to_json(rows: List[Dict[str, Any]]) -> str:
    return json.dumps(rows, indent=2, default=str)
